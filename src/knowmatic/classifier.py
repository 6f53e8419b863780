# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Sequence classifiers: difficulty, reasoning effort and code language."""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from knowmatic.metadata import ClassifierMetadata
from knowmatic.scorer import create_session


@dataclass(frozen=True)
class Prediction:
    label: str
    score: float


def softmax(logits: np.ndarray) -> np.ndarray:
    logits = np.asarray(logits, dtype=np.float64)
    exps = np.exp(logits - logits.max())
    return exps / exps.sum()


class SequenceClassifier:
    """Runs a fixed-window classifier graph (``input_ids`` + ``attention_mask``)."""

    def __init__(self, session, metadata: ClassifierMetadata):
        self.session = session
        self.metadata = metadata

    @classmethod
    def from_files(
        cls, model_path: str, metadata_path: str, num_threads: int = 0
    ) -> "SequenceClassifier":
        metadata = ClassifierMetadata.from_json(metadata_path)
        return cls(create_session(model_path, num_threads=num_threads), metadata)

    def classify(
        self, input_ids: Sequence[int], attention_mask: Sequence[int]
    ) -> list[Prediction]:
        """Return one prediction per class, highest probability first."""
        feed = {
            "input_ids": np.asarray([list(input_ids)], dtype=np.int64),
            "attention_mask": np.asarray([list(attention_mask)], dtype=np.int64),
        }
        (logits,) = self.session.run(["logits"], feed)
        probs = softmax(np.asarray(logits).reshape(-1))
        predictions = [
            Prediction(label=self.metadata.label(i), score=float(p))
            for i, p in enumerate(probs)
        ]
        return sorted(predictions, key=lambda p: p.score, reverse=True)
