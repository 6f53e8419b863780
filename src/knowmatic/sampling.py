# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Pure transforms over a logit vector, applied once per generation step."""

from collections.abc import Mapping

import numpy as np

_default_rng = np.random.default_rng()


def apply_repetition_penalty(
    logits: np.ndarray, token_counts: Mapping[int, int], penalty: float
) -> np.ndarray:
    """Push down the score of every token already seen ``count`` times.

    Positive logits are divided by ``penalty ** count`` and negative ones
    multiplied by it, so repeated tokens always lose score.  Ids outside the
    vocabulary are ignored.  No-op when ``penalty <= 1``.
    """
    if penalty <= 1:
        return logits
    penalized = np.array(logits, dtype=np.float32, copy=True)
    size = penalized.shape[0]
    for token_id, count in token_counts.items():
        if 0 <= token_id < size:
            scaled = penalty**count
            if penalized[token_id] > 0:
                penalized[token_id] /= scaled
            else:
                penalized[token_id] *= scaled
    return penalized


def temperature_scale(logits: np.ndarray, temperature: float) -> np.ndarray:
    """Divide every logit by *temperature*; no-op when ``temperature <= 0``."""
    if temperature <= 0:
        return logits
    return np.asarray(logits, dtype=np.float32) / np.float32(temperature)


def top_k_filter(logits: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(indices, values)`` of the *k* highest logits, descending.

    Ties keep their original index order.
    """
    logits = np.asarray(logits, dtype=np.float32)
    order = np.argsort(-logits, kind="stable")[: max(k, 0)]
    return order, logits[order]


def softmax_max(logits: np.ndarray) -> float:
    """Highest softmax probability among *logits*."""
    logits = np.asarray(logits, dtype=np.float64)
    if logits.size == 0:
        raise ValueError("softmax_max() of an empty logit vector")
    exps = np.exp(logits - logits.max())
    return float(exps.max() / exps.sum())


def sample_from_logits(logits: np.ndarray, rng: np.random.Generator | None = None) -> int:
    """Draw an index with probability proportional to ``exp(logit)``.

    A single uniform draw in ``[0, sum(exp))`` selects the first index whose
    running sum reaches it; rounding that leaves the draw above the final sum
    falls back to the last index.
    """
    logits = np.asarray(logits, dtype=np.float64)
    if logits.size == 0:
        raise ValueError("sample_from_logits() of an empty logit vector")
    exps = np.exp(logits - logits.max())
    cumulative = np.cumsum(exps)
    r = (rng or _default_rng).random() * cumulative[-1]
    idx = int(np.searchsorted(cumulative, r, side="left"))
    return min(idx, logits.size - 1)
