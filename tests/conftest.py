# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Shared fixtures: a tiny byte-level BPE tokenizer and deterministic scorers."""

import json

import numpy as np
import pytest

from knowmatic.api import Autocompleter
from knowmatic.classifier import SequenceClassifier
from knowmatic.generation import AutocompleteEngine
from knowmatic.metadata import ClassifierMetadata, GenerativeMetadata
from knowmatic.tokenizer import Tokenizer, bytes_to_unicode

MERGES = ["h e", "l l", "he ll", "hell o", "Ġ w", "o r", "Ġw or", "Ġwor l", "Ġworl d"]
SPECIALS = ["<pad>", "<unk>", "<bos>", "<eos>"]
EOS = 3


def build_tokenizer_json() -> dict:
    """Specials, one entry per byte, then one entry per merge result."""
    byte_chars = bytes_to_unicode()
    vocab = {token: i for i, token in enumerate(SPECIALS)}
    for b in range(256):
        vocab[byte_chars[b]] = len(vocab)
    for merge in MERGES:
        vocab.setdefault(merge.replace(" ", ""), len(vocab))
    return {
        "version": "1.0",
        "added_tokens": [{"id": i, "content": t, "special": True} for i, t in enumerate(SPECIALS)],
        "model": {"type": "BPE", "vocab": vocab, "merges": MERGES},
    }


class ScriptedScorer:
    """Returns one-hot-ish logits following a fixed script, one entry per call."""

    def __init__(self, script, vocab_size, fallback=EOS):
        self.script = list(script)
        self.vocab_size = vocab_size
        self.fallback = fallback
        self.calls: list[list[int]] = []

    def score(self, token_ids):
        step = len(self.calls)
        self.calls.append(list(token_ids))
        target = self.script[step] if step < len(self.script) else self.fallback
        logits = np.full(self.vocab_size, -20.0, dtype=np.float32)
        logits[target] = 20.0
        return logits


class ChainScorer:
    """Stateless scorer: the next id depends only on the last id."""

    def __init__(self, chain, vocab_size, eos=EOS):
        self.chain = dict(chain)
        self.vocab_size = vocab_size
        self.eos = eos

    def score(self, token_ids):
        logits = np.full(self.vocab_size, -20.0, dtype=np.float32)
        logits[self.chain.get(token_ids[-1], self.eos)] = 20.0
        return logits


class FakeSession:
    """Stands in for an onnxruntime session with a fixed output."""

    def __init__(self, output):
        self.output = np.asarray(output, dtype=np.float32)
        self.feeds: list[dict] = []

    def run(self, output_names, feed):
        self.feeds.append(feed)
        return [self.output]


@pytest.fixture
def tokenizer_file(tmp_path):
    path = tmp_path / "tokenizer.json"
    path.write_text(json.dumps(build_tokenizer_json()), encoding="utf-8")
    return str(path)


@pytest.fixture
def tokenizer(tokenizer_file):
    return Tokenizer.from_file(tokenizer_file)


@pytest.fixture
def vocab():
    return build_tokenizer_json()["model"]["vocab"]


@pytest.fixture
def metadata(tokenizer):
    return GenerativeMetadata(vocab_size=tokenizer.vocab_size)


@pytest.fixture
def autocompleter(tokenizer, vocab, metadata):
    """Continues "hello" with " world", then stops."""
    scorer = ChainScorer({vocab["hello"]: vocab["Ġworld"]}, tokenizer.vocab_size)
    return Autocompleter(tokenizer, AutocompleteEngine(scorer, metadata))


@pytest.fixture
def classifiers():
    return {
        "difficulty": SequenceClassifier(
            FakeSession([[0.1, 2.0, 0.5]]),
            ClassifierMetadata({0: "Easy", 1: "Medium", 2: "Hard"}, max_length=16),
        ),
        "effort": SequenceClassifier(
            FakeSession([[3.0, 0.0, -1.0]]),
            ClassifierMetadata({0: "low", 1: "medium", 2: "high"}, max_length=16),
        ),
        "code": SequenceClassifier(
            FakeSession([[0.0, 4.0]]),
            ClassifierMetadata({0: "javascript", 1: "python"}, max_length=16),
        ),
    }
