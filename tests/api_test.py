# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Tests for the library entry points."""

import threading

import pytest

from knowmatic import api
from knowmatic.api import Autocompleter, CodeReport, PromptReport, analyze
from knowmatic.classifier import Prediction
from knowmatic.errors import LoadError


@pytest.fixture
def stub_loaders(monkeypatch, tokenizer, classifiers):
    monkeypatch.setattr(api, "get_classifier_tokenizer", lambda models_dir: tokenizer)
    monkeypatch.setattr(api, "get_classifier", lambda models_dir, task, num_threads=0: classifiers[task])
    return classifiers


def test_complete(autocompleter, vocab):
    result = autocompleter.complete("hello")
    assert result.text == " world"
    assert result.tokens == [vocab["Ġworld"]]


def test_complete_strips_input(autocompleter):
    assert autocompleter.complete("  hello \n").text == " world"


def test_stream_yields_pieces(autocompleter):
    assert list(autocompleter.stream("hello")) == [" world"]


def test_stream_respects_cancel(autocompleter):
    cancel = threading.Event()
    cancel.set()
    assert list(autocompleter.stream("hello", cancel)) == []


def test_defaults_and_overrides(autocompleter):
    limited = Autocompleter(autocompleter.tokenizer, autocompleter.engine, max_new_tokens=0)
    assert limited.complete("hello").text == ""
    assert limited.complete("hello", max_new_tokens=5).text == " world"


def test_analyze_without_code(tmp_path, stub_loaders):
    report = analyze("hello world", models_dir=str(tmp_path))
    assert report.difficulty[0].label == "Medium"
    assert report.effort[0].label == "low"
    assert report.code == CodeReport(detected=False)
    assert report.suggested_model == "Sonnet"
    assert report.savings_pct == 80
    assert stub_loaders["code"].session.feeds == []


def test_analyze_classifies_extracted_code(tmp_path, stub_loaders, tokenizer):
    text = "why?\n```python\nhello\n```"
    report = analyze(text, models_dir=str(tmp_path))
    assert report.code.detected
    assert report.code.predictions[0].label == "python"

    fed = stub_loaders["code"].session.feeds[0]["input_ids"][0].tolist()
    assert fed == tokenizer.encode("hello", 16).input_ids


def test_classify_result_top(tmp_path, stub_loaders):
    result = api.classify_difficulty("hello", models_dir=str(tmp_path))
    assert result.top == result.predictions[0]
    assert result.latency_ms >= 0


def test_savings_for_each_tier():
    def report(label):
        return PromptReport([Prediction(label, 1.0)], [], CodeReport(False), 0)

    assert report("Easy").savings_pct == 93
    assert report("Hard").savings_pct == 0
    assert report("Hard").suggested_model == "Opus"
    assert report("Unknown").savings_pct == 0


def test_unknown_classifier_task(tmp_path):
    with pytest.raises(ValueError, match="Unknown classifier"):
        api.get_classifier(str(tmp_path), "sentiment")


def test_missing_bundle_raises_load_error(tmp_path):
    with pytest.raises(LoadError):
        Autocompleter.load(str(tmp_path))
