# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Shared helper functions for the API server."""

import time
import uuid


def make_id(prefix: str = "cmpl") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def now() -> int:
    return int(time.time())
