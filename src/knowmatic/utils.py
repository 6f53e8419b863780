# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Shared configuration helpers used by the CLI, the interactive client and the API server."""

import logging

# Quiet period between the last keystroke and a new suggestion request.
DEBOUNCE_SECONDS = 0.5

# Sampling overrides for ghost-text suggestions: stop as soon as the model is
# unsure, and strongly discourage loops.
INTERACTIVE_PARAMS = {
    "min_confidence": 0.95,
    "repetition_penalty": 1.5,
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Send knowmatic's log records to stderr (DEBUG when *verbose*)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )


def generation_kwargs(
    max_new_tokens: int | None = None,
    temperature: float | None = None,
    top_k: int | None = None,
    min_confidence: float | None = None,
    repetition_penalty: float | None = None,
) -> dict:
    """Collect explicitly set sampling parameters, dropping ``None`` values."""
    pairs = {
        "max_new_tokens": max_new_tokens,
        "temperature": temperature,
        "top_k": top_k,
        "min_confidence": min_confidence,
        "repetition_penalty": repetition_penalty,
    }
    return {k: v for k, v in pairs.items() if v is not None}
