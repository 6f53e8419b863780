# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Exception hierarchy for knowmatic."""


class KnowmaticError(Exception):
    """Base exception for all knowmatic errors."""


class LoadError(KnowmaticError):
    """Raised when a tokenizer, metadata or model file is missing or malformed."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        if path:
            message = f"{message} (path: {path})"
        super().__init__(message)
        self.path = path


class GenerationFault(KnowmaticError):
    """Raised when the scorer fails or returns logits of the wrong shape."""
