# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Tests for sequence classifiers and the ONNX scorer adapter."""

import numpy as np
import pytest

from knowmatic.classifier import SequenceClassifier, softmax
from knowmatic.errors import LoadError
from knowmatic.metadata import ClassifierMetadata
from knowmatic.scorer import OnnxScorer, Scorer, create_session

from conftest import FakeSession


def test_softmax_sums_to_one():
    probs = softmax(np.array([1.0, 2.0, 3.0]))
    assert probs.sum() == pytest.approx(1.0)
    assert probs.argmax() == 2


def test_classify_sorts_predictions():
    session = FakeSession([[0.1, 2.0, 0.5]])
    clf = SequenceClassifier(session, ClassifierMetadata({0: "Easy", 1: "Medium", 2: "Hard"}))
    preds = clf.classify([2, 5, 3, 0], [1, 1, 1, 0])

    assert [p.label for p in preds] == ["Medium", "Hard", "Easy"]
    assert sum(p.score for p in preds) == pytest.approx(1.0)
    feed = session.feeds[0]
    assert feed["input_ids"].dtype == np.int64
    assert feed["input_ids"].shape == (1, 4)
    assert feed["attention_mask"].tolist() == [[1, 1, 1, 0]]


def test_onnx_scorer_takes_last_position():
    logits = np.arange(2 * 3 * 4, dtype=np.float32).reshape(1, 6, 4)[:, :3]
    scorer = OnnxScorer(FakeSession(logits))
    np.testing.assert_array_equal(scorer.score([1, 2, 3]), logits[0, -1])
    assert isinstance(scorer, Scorer)


def test_onnx_scorer_accepts_sliced_output():
    scorer = OnnxScorer(FakeSession([[0.5, 1.5]]))
    np.testing.assert_array_equal(scorer.score([1]), [0.5, 1.5])


def test_onnx_scorer_feeds_int64_batch():
    session = FakeSession([[0.0]])
    OnnxScorer(session).score([4, 5])
    assert session.feeds[0]["input_ids"].tolist() == [[4, 5]]
    assert session.feeds[0]["input_ids"].dtype == np.int64


def test_create_session_missing_model(tmp_path):
    with pytest.raises(LoadError, match="not found"):
        create_session(str(tmp_path / "model_quantized.onnx"))
