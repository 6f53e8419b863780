# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""
Scorer contract and the ONNX Runtime backend.

A scorer maps a token-id sequence to the logits of its final position.  The
generation engine only depends on the :class:`Scorer` protocol, so tests and
alternative runtimes can plug in any object with a ``score`` method.
"""

import logging
import os
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import numpy as np

from knowmatic.errors import LoadError

log = logging.getLogger(__name__)


@runtime_checkable
class Scorer(Protocol):
    def score(self, token_ids: Sequence[int]) -> np.ndarray:
        """Return the logits (one per vocabulary entry) for the last position."""
        ...


def create_session(model_path: str, num_threads: int = 0):
    """Open an ONNX Runtime CPU session with full graph optimisation."""
    import onnxruntime as ort

    if not os.path.exists(model_path):
        raise LoadError("Model file not found", path=model_path)

    options = ort.SessionOptions()
    options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
    if num_threads:
        options.intra_op_num_threads = num_threads
    try:
        session = ort.InferenceSession(
            model_path, sess_options=options, providers=["CPUExecutionProvider"]
        )
    except Exception as e:
        raise LoadError(f"Could not load ONNX model: {e}", path=model_path) from e
    log.debug(
        "Opened %s (inputs=%s)",
        model_path,
        [i.name for i in session.get_inputs()],
    )
    return session


class OnnxScorer:
    """Causal LM scorer backed by an ``onnxruntime.InferenceSession``.

    The graph takes ``input_ids`` (int64, ``[1, n]``) and produces ``logits``
    of shape ``[1, n, vocab]`` (or ``[1, vocab]`` for graphs that already
    slice the last position).
    """

    def __init__(self, session, input_name: str = "input_ids", output_name: str = "logits"):
        self.session = session
        self.input_name = input_name
        self.output_name = output_name

    @classmethod
    def from_file(cls, model_path: str, num_threads: int = 0) -> "OnnxScorer":
        return cls(create_session(model_path, num_threads=num_threads))

    def score(self, token_ids: Sequence[int]) -> np.ndarray:
        feed = {self.input_name: np.asarray([list(token_ids)], dtype=np.int64)}
        (logits,) = self.session.run([self.output_name], feed)
        logits = np.asarray(logits, dtype=np.float32)
        if logits.ndim == 3:
            return logits[0, -1]
        if logits.ndim == 2:
            return logits[0]
        return logits
