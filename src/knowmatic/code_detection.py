# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Fenced code-block detection for routing prompts to the code classifier."""

import re

_FENCE_RE = re.compile(r"```[\s\S]*?```")
_BLOCK_RE = re.compile(r"```(?:\w*\n)?([\s\S]*?)```")


def contains_code(text: str) -> bool:
    return _FENCE_RE.search(text) is not None


def extract_code(text: str) -> str | None:
    """Return the stripped body of the first fenced block, or ``None``."""
    match = _BLOCK_RE.search(text)
    return match.group(1).strip() if match else None
