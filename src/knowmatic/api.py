# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""
Library entry points.

Tokenizers and engines are loaded on first use and cached per models
directory, so repeated calls only pay for inference.
"""

import functools
import logging
import os
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field

from knowmatic.classifier import Prediction, SequenceClassifier
from knowmatic.code_detection import contains_code, extract_code
from knowmatic.generation import AutocompleteEngine, GenerationOptions
from knowmatic.metadata import GenerativeMetadata
from knowmatic.model_store import (
    AUTOCOMPLETE_DIR,
    AUTOCOMPLETE_METADATA,
    AUTOCOMPLETE_TOKENIZER_FILE,
    CLASSIFIERS,
    MODEL_FILE,
    TOKENIZER_FILE,
    resolve_models_dir,
)
from knowmatic.scorer import OnnxScorer
from knowmatic.token_utils import IncrementalDecoder
from knowmatic.tokenizer import Tokenizer

log = logging.getLogger(__name__)

# Difficulty label -> suggested model tier, and relative cost per tier.
MODEL_MAP = {"Easy": "Haiku", "Medium": "Sonnet", "Hard": "Opus"}
MODEL_COSTS = {"Easy": 6, "Medium": 18, "Hard": 90}


@dataclass
class ClassifyResult:
    predictions: list[Prediction]
    latency_ms: int

    @property
    def top(self) -> Prediction:
        return self.predictions[0]


@dataclass
class CodeReport:
    detected: bool
    predictions: list[Prediction] | None = None


@dataclass
class PromptReport:
    difficulty: list[Prediction]
    effort: list[Prediction]
    code: CodeReport
    latency_ms: int

    @property
    def suggested_model(self) -> str:
        label = self.difficulty[0].label
        return MODEL_MAP.get(label, label)

    @property
    def savings_pct(self) -> int:
        """Cost saved by routing to the suggested tier instead of the top one."""
        cost = MODEL_COSTS.get(self.difficulty[0].label)
        if cost is None:
            return 0
        top = MODEL_COSTS["Hard"]
        return round((top - cost) / top * 100)


@dataclass
class AutocompleteResult:
    text: str
    tokens: list[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Lazy-loaded engine caches
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def get_classifier_tokenizer(models_dir: str) -> Tokenizer:
    return Tokenizer.from_file(os.path.join(models_dir, TOKENIZER_FILE))


@functools.lru_cache(maxsize=None)
def get_autocomplete_tokenizer(models_dir: str) -> Tokenizer:
    return Tokenizer.from_file(os.path.join(models_dir, AUTOCOMPLETE_TOKENIZER_FILE))


@functools.lru_cache(maxsize=None)
def get_classifier(models_dir: str, task: str, num_threads: int = 0) -> SequenceClassifier:
    if task not in CLASSIFIERS:
        raise ValueError(f"Unknown classifier {task!r}; expected one of {sorted(CLASSIFIERS)}")
    subdir = os.path.join(models_dir, CLASSIFIERS[task])
    log.debug("Loading %s classifier from %s", task, subdir)
    return SequenceClassifier.from_files(
        os.path.join(subdir, MODEL_FILE),
        os.path.join(subdir, "metadata.json"),
        num_threads=num_threads,
    )


@functools.lru_cache(maxsize=None)
def get_autocomplete_engine(models_dir: str, num_threads: int = 0) -> AutocompleteEngine:
    subdir = os.path.join(models_dir, AUTOCOMPLETE_DIR)
    log.debug("Loading autocomplete model from %s", subdir)
    metadata = GenerativeMetadata.from_json(os.path.join(subdir, AUTOCOMPLETE_METADATA))
    scorer = OnnxScorer.from_file(os.path.join(subdir, MODEL_FILE), num_threads=num_threads)
    return AutocompleteEngine(scorer, metadata)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def _run_classifier(text: str, task: str, models_dir: str | None, num_threads: int) -> ClassifyResult:
    directory = resolve_models_dir(models_dir)
    start = time.perf_counter()
    tokenizer = get_classifier_tokenizer(directory)
    classifier = get_classifier(directory, task, num_threads)
    encoding = tokenizer.encode(text, classifier.metadata.max_length)
    predictions = classifier.classify(encoding.input_ids, encoding.attention_mask)
    return ClassifyResult(predictions, round((time.perf_counter() - start) * 1000))


def classify_difficulty(text: str, models_dir: str | None = None, num_threads: int = 0) -> ClassifyResult:
    return _run_classifier(text, "difficulty", models_dir, num_threads)


def classify_reasoning_effort(text: str, models_dir: str | None = None, num_threads: int = 0) -> ClassifyResult:
    return _run_classifier(text, "effort", models_dir, num_threads)


def classify_code(text: str, models_dir: str | None = None, num_threads: int = 0) -> ClassifyResult:
    return _run_classifier(text, "code", models_dir, num_threads)


def analyze(text: str, models_dir: str | None = None, num_threads: int = 0) -> PromptReport:
    """Run every classifier on *text*.

    The code classifier only runs when the prompt contains a fenced block,
    and then only on that block.
    """
    start = time.perf_counter()
    difficulty = classify_difficulty(text, models_dir, num_threads)
    effort = classify_reasoning_effort(text, models_dir, num_threads)
    code = CodeReport(detected=contains_code(text))
    if code.detected:
        code.predictions = classify_code(
            extract_code(text) or text, models_dir, num_threads
        ).predictions
    return PromptReport(
        difficulty=difficulty.predictions,
        effort=effort.predictions,
        code=code,
        latency_ms=round((time.perf_counter() - start) * 1000),
    )


# ---------------------------------------------------------------------------
# Autocomplete
# ---------------------------------------------------------------------------


class Autocompleter:
    """Binds a tokenizer to an engine and streams decoded continuations."""

    def __init__(self, tokenizer: Tokenizer, engine: AutocompleteEngine, **defaults):
        self.tokenizer = tokenizer
        self.engine = engine
        self.defaults = defaults

    @classmethod
    def load(cls, models_dir: str | None = None, num_threads: int = 0, **defaults) -> "Autocompleter":
        directory = resolve_models_dir(models_dir)
        return cls(
            get_autocomplete_tokenizer(directory),
            get_autocomplete_engine(directory, num_threads),
            **defaults,
        )

    def generate(self, text: str, cancel: threading.Event | None = None, **options):
        """Start generation for *text*; returns the engine's token stream."""
        input_ids = self.tokenizer.encode_for_generation(text.strip())
        opts = GenerationOptions(**{**self.defaults, **options})
        return self.engine.generate(input_ids, opts, cancel=cancel)

    def stream(self, text: str, cancel: threading.Event | None = None, **options) -> Iterator[str]:
        """Yield text pieces as tokens are generated."""
        decoder = IncrementalDecoder(self.tokenizer)
        for token_id in self.generate(text, cancel, **options):
            piece = decoder.decode(token_id)
            if piece:
                yield piece
        tail = decoder.flush()
        if tail:
            yield tail

    def complete(self, text: str, cancel: threading.Event | None = None, **options) -> AutocompleteResult:
        stream = self.generate(text, cancel, **options)
        tokens = list(stream)
        return AutocompleteResult(self.tokenizer.decode(tokens), tokens)


def autocomplete(
    text: str, models_dir: str | None = None, num_threads: int = 0, **options
) -> AutocompleteResult:
    """Generate a full continuation of *text*.

    Options are :class:`~knowmatic.generation.GenerationOptions` fields.
    """
    return Autocompleter.load(models_dir, num_threads).complete(text, **options)


def autocomplete_stream(
    text: str, models_dir: str | None = None, num_threads: int = 0, **options
) -> Iterator[str]:
    """Yield the continuation of *text* piece by piece."""
    yield from Autocompleter.load(models_dir, num_threads).stream(text, **options)
