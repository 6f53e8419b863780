# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Tests for the generation engine and its token stream."""

import asyncio
import threading

import numpy as np
import pytest

from knowmatic.errors import GenerationFault
from knowmatic.generation import (
    AutocompleteEngine,
    GenerationOptions,
    GenerationState,
    astream,
)
from knowmatic.metadata import GenerativeMetadata

from conftest import EOS, ScriptedScorer

VOCAB = 16
PROMPT = [2, 9, 10]


def make_engine(scorer, **defaults):
    metadata = GenerativeMetadata(vocab_size=VOCAB)
    metadata.generation_defaults.update(defaults)
    return AutocompleteEngine(scorer, metadata)


def test_stops_at_max_new_tokens():
    scorer = ScriptedScorer([5, 6, 7, 8], VOCAB)
    stream = make_engine(scorer).generate(PROMPT, GenerationOptions(max_new_tokens=3))
    assert list(stream) == [5, 6, 7]
    assert stream.state is GenerationState.COMPLETED
    assert len(scorer.calls) == 3


def test_scores_the_growing_sequence():
    scorer = ScriptedScorer([5, 6], VOCAB)
    list(make_engine(scorer).generate(PROMPT))
    assert scorer.calls[0] == PROMPT
    assert scorer.calls[1] == PROMPT + [5]


def test_eos_ends_without_being_yielded():
    scorer = ScriptedScorer([5, EOS, 6], VOCAB)
    stream = make_engine(scorer).generate(PROMPT)
    assert list(stream) == [5]
    assert stream.tokens == [5]
    assert stream.state is GenerationState.COMPLETED


def test_zero_max_new_tokens_is_empty():
    scorer = ScriptedScorer([5], VOCAB)
    stream = make_engine(scorer).generate(PROMPT, GenerationOptions(max_new_tokens=0))
    assert list(stream) == []
    assert scorer.calls == []


def test_defaults_come_from_metadata():
    scorer = ScriptedScorer([5] * 10, VOCAB)
    stream = make_engine(scorer, max_new_tokens=2).generate(PROMPT)
    assert list(stream) == [5, 5]


def test_cancel_before_first_step():
    scorer = ScriptedScorer([5, 6], VOCAB)
    cancel = threading.Event()
    cancel.set()
    stream = make_engine(scorer).generate(PROMPT, cancel=cancel)
    assert list(stream) == []
    assert stream.state is GenerationState.ABORTED
    assert scorer.calls == []


def test_cancel_between_steps():
    scorer = ScriptedScorer([5, 6, 7], VOCAB)
    cancel = threading.Event()
    stream = make_engine(scorer).generate(PROMPT, cancel=cancel)
    assert next(stream) == 5
    cancel.set()
    with pytest.raises(StopIteration):
        next(stream)
    assert stream.state is GenerationState.ABORTED
    assert len(scorer.calls) == 1


def test_min_confidence_gate_stops_on_flat_logits():
    class FlatScorer:
        def score(self, token_ids):
            return np.zeros(VOCAB, dtype=np.float32)

    stream = make_engine(FlatScorer()).generate(PROMPT, GenerationOptions(min_confidence=0.5))
    assert list(stream) == []
    assert stream.state is GenerationState.COMPLETED


def test_min_confidence_passes_confident_steps():
    scorer = ScriptedScorer([5, 6], VOCAB)
    stream = make_engine(scorer).generate(PROMPT, GenerationOptions(min_confidence=0.95))
    assert list(stream) == [5, 6]


def test_top_k_one_is_greedy():
    class Ramp:
        def score(self, token_ids):
            return np.linspace(0.0, 1.0, VOCAB, dtype=np.float32)

    opts = GenerationOptions(max_new_tokens=3, top_k=1, rng=np.random.default_rng(0))
    assert list(make_engine(Ramp()).generate(PROMPT, opts)) == [VOCAB - 1] * 3


def test_repetition_penalty_breaks_loops():
    class Repeater:
        def score(self, token_ids):
            logits = np.full(VOCAB, -5.0, dtype=np.float32)
            logits[5] = 2.0
            logits[6] = 1.5
            return logits

    opts = GenerationOptions(max_new_tokens=2, top_k=1, repetition_penalty=2.0)
    assert list(make_engine(Repeater()).generate(PROMPT, opts)) == [5, 6]


def test_scorer_error_fails_the_stream():
    class Broken:
        def score(self, token_ids):
            raise RuntimeError("boom")

    stream = make_engine(Broken()).generate(PROMPT)
    with pytest.raises(GenerationFault, match="boom"):
        next(stream)
    assert stream.state is GenerationState.FAILED
    with pytest.raises(StopIteration):
        next(stream)


@pytest.mark.parametrize("logits", [np.zeros(VOCAB - 1), np.zeros((2, VOCAB)), np.zeros(0)])
def test_malformed_logits_fail_the_stream(logits):
    class Bad:
        def score(self, token_ids):
            return logits

    stream = make_engine(Bad()).generate(PROMPT)
    with pytest.raises(GenerationFault):
        next(stream)
    assert stream.state is GenerationState.FAILED


def test_invalid_options_rejected():
    engine = make_engine(ScriptedScorer([], VOCAB))
    with pytest.raises(ValueError):
        engine.generate(PROMPT, GenerationOptions(top_k=0))
    with pytest.raises(ValueError):
        engine.generate(PROMPT, GenerationOptions(max_new_tokens=-1))


def test_engine_keeps_no_state_between_calls():
    engine = make_engine(ScriptedScorer([5, EOS, 5, EOS], VOCAB))
    assert list(engine.generate(PROMPT)) == [5]
    assert list(engine.generate(PROMPT)) == [5]


def test_astream_collects_tokens():
    async def collect():
        stream = make_engine(ScriptedScorer([5, 6, EOS], VOCAB)).generate(PROMPT)
        return [t async for t in astream(stream)]

    assert asyncio.run(collect()) == [5, 6]
