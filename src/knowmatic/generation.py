# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""
Autoregressive generation.

:class:`AutocompleteEngine` turns a prompt into a :class:`TokenStream`, a
single-use iterator that performs exactly one scorer call per step:

    penalty -> temperature -> top-k -> (confidence gate) -> sample

The stream ends when ``max_new_tokens`` ids were produced, when the sampled
id is end-of-sequence, when the confidence gate fails, or when the cancel
event is observed at the start of a step.
"""

import asyncio
import enum
import logging
import threading
from collections import Counter
from collections.abc import AsyncGenerator, Sequence
from dataclasses import dataclass

import numpy as np

from knowmatic.errors import GenerationFault
from knowmatic.metadata import GenerativeMetadata
from knowmatic.sampling import (
    apply_repetition_penalty,
    sample_from_logits,
    softmax_max,
    temperature_scale,
    top_k_filter,
)
from knowmatic.scorer import Scorer

log = logging.getLogger(__name__)


class GenerationState(enum.Enum):
    IDLE = "idle"
    STEPPING = "stepping"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class GenerationOptions:
    """Per-call sampling options.  ``None`` means "use the model default"."""

    max_new_tokens: int | None = None
    temperature: float | None = None
    top_k: int | None = None
    min_confidence: float = 0.0
    repetition_penalty: float = 1.0
    rng: np.random.Generator | None = None

    def resolve(self, defaults: dict) -> "GenerationOptions":
        """Fill unset fields from *defaults* and validate the result."""
        resolved = GenerationOptions(
            max_new_tokens=(
                self.max_new_tokens
                if self.max_new_tokens is not None
                else defaults["max_new_tokens"]
            ),
            temperature=(
                self.temperature if self.temperature is not None else defaults["temperature"]
            ),
            top_k=self.top_k if self.top_k is not None else defaults["top_k"],
            min_confidence=self.min_confidence,
            repetition_penalty=self.repetition_penalty,
            rng=self.rng,
        )
        if resolved.max_new_tokens < 0:
            raise ValueError("max_new_tokens must be >= 0")
        if resolved.top_k < 1:
            raise ValueError("top_k must be >= 1")
        return resolved


class TokenStream:
    """Lazy, forward-only stream of generated token ids."""

    def __init__(
        self,
        scorer: Scorer,
        input_ids: Sequence[int],
        options: GenerationOptions,
        eos_token_id: int,
        vocab_size: int | None = None,
        cancel: threading.Event | None = None,
    ):
        self._scorer = scorer
        self._ids = list(input_ids)
        self._options = options
        self._eos = eos_token_id
        self._vocab_size = vocab_size
        self._cancel = cancel
        self.tokens: list[int] = []
        self.state = GenerationState.IDLE

    @property
    def options(self) -> GenerationOptions:
        return self._options

    @property
    def finished(self) -> bool:
        return self.state in (
            GenerationState.COMPLETED,
            GenerationState.ABORTED,
            GenerationState.FAILED,
        )

    def __iter__(self):
        return self

    def __next__(self) -> int:
        if self.finished:
            raise StopIteration
        opts = self._options
        if len(self.tokens) >= opts.max_new_tokens:
            self._finish(GenerationState.COMPLETED)
        if self._cancel is not None and self._cancel.is_set():
            self._finish(GenerationState.ABORTED)

        self.state = GenerationState.STEPPING
        logits = self._score()

        logits = apply_repetition_penalty(logits, Counter(self._ids), opts.repetition_penalty)
        logits = temperature_scale(logits, opts.temperature)
        indices, candidates = top_k_filter(logits, opts.top_k)

        if opts.min_confidence > 0 and softmax_max(candidates) < opts.min_confidence:
            log.debug("Stopping: top probability below %.3f", opts.min_confidence)
            self._finish(GenerationState.COMPLETED)

        token_id = int(indices[sample_from_logits(candidates, opts.rng)])
        if token_id == self._eos:
            self._finish(GenerationState.COMPLETED)

        self._ids.append(token_id)
        self.tokens.append(token_id)
        return token_id

    def _finish(self, state: GenerationState):
        self.state = state
        raise StopIteration

    def _score(self) -> np.ndarray:
        try:
            logits = np.asarray(self._scorer.score(self._ids), dtype=np.float32)
        except Exception as e:
            self.state = GenerationState.FAILED
            raise GenerationFault(f"Scorer failed: {e}") from e

        if logits.ndim != 1 or logits.size == 0:
            self.state = GenerationState.FAILED
            raise GenerationFault(f"Scorer returned logits of shape {logits.shape}")
        if self._vocab_size and logits.shape[0] != self._vocab_size:
            self.state = GenerationState.FAILED
            raise GenerationFault(
                f"Scorer returned {logits.shape[0]} logits, expected {self._vocab_size}"
            )
        return logits


class AutocompleteEngine:
    """Drives a scorer step by step.  Holds no per-call state."""

    def __init__(self, scorer: Scorer, metadata: GenerativeMetadata):
        self.scorer = scorer
        self.metadata = metadata

    def generate(
        self,
        input_ids: Sequence[int],
        options: GenerationOptions | None = None,
        cancel: threading.Event | None = None,
    ) -> TokenStream:
        resolved = (options or GenerationOptions()).resolve(
            self.metadata.generation_defaults
        )
        return TokenStream(
            self.scorer,
            input_ids,
            resolved,
            eos_token_id=self.metadata.special_tokens.eos,
            vocab_size=self.metadata.vocab_size,
            cancel=cancel,
        )


_DONE = object()


async def astream(stream) -> AsyncGenerator:
    """Iterate *stream* from async code, one step per executor call."""
    loop = asyncio.get_running_loop()
    while True:
        item = await loop.run_in_executor(None, next, stream, _DONE)
        if item is _DONE:
            return
        yield item
