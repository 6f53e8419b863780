# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Classifier component: prompt difficulty, reasoning effort and code language."""

import asyncio
import functools
import logging
import time

from fastapi import APIRouter, HTTPException

from knowmatic.api import MODEL_MAP, get_classifier, get_classifier_tokenizer
from knowmatic.classifier import SequenceClassifier
from knowmatic.code_detection import contains_code, extract_code
from knowmatic.model_store import CLASSIFIERS, resolve_models_dir
from knowmatic.tokenizer import Tokenizer

from ._component import Component
from ._helpers import make_id, now
from ._models import ClassifyRequest, ClassifyResponse, PredictionInfo, ServerState

log = logging.getLogger(__name__)


class Classifier(Component):
    """Exposes POST /v1/classify.

    ``tokenizer`` and ``classifiers`` may be passed in directly; otherwise
    they are loaded from *models_dir* when the server starts.
    """

    def __init__(
        self,
        models_dir: str | None = None,
        num_threads: int = 0,
        tokenizer: Tokenizer | None = None,
        classifiers: dict[str, SequenceClassifier] | None = None,
    ):
        self._models_dir = models_dir
        self._num_threads = num_threads
        self.tokenizer = tokenizer
        self.classifiers = classifiers
        self.state = ServerState.NO_MODEL

    async def start(self) -> None:
        if self.tokenizer is None or self.classifiers is None:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._load)
        self.state = ServerState.RUNNING

    async def stop(self) -> None:
        self.state = ServerState.NO_MODEL

    def _load(self) -> None:
        directory = resolve_models_dir(self._models_dir)
        if self.tokenizer is None:
            self.tokenizer = get_classifier_tokenizer(directory)
        if self.classifiers is None:
            self.classifiers = {
                task: get_classifier(directory, task, self._num_threads) for task in CLASSIFIERS
            }
        log.info("Loaded %d classifiers from %s", len(self.classifiers), directory)

    def classify(self, text: str, tasks: list[str]) -> ClassifyResponse:
        """Run the requested classifiers on *text*.

        ``code`` only runs when *text* contains a fenced block, on that
        block's body.
        """
        start = time.perf_counter()
        code_detected = contains_code(text)
        results: dict[str, list[PredictionInfo]] = {}
        for task in tasks:
            target = text
            if task == "code":
                if not code_detected:
                    continue
                target = extract_code(text) or text
            classifier = self.classifiers.get(task)
            if classifier is None:
                continue
            encoding = self.tokenizer.encode(target, classifier.metadata.max_length)
            results[task] = [
                PredictionInfo(label=p.label, score=p.score)
                for p in classifier.classify(encoding.input_ids, encoding.attention_mask)
            ]

        suggested = None
        if results.get("difficulty"):
            label = results["difficulty"][0].label
            suggested = MODEL_MAP.get(label, label)
        return ClassifyResponse(
            id=make_id("clf"),
            created=now(),
            results=results,
            code_detected=code_detected,
            suggested_model=suggested,
            latency_ms=round((time.perf_counter() - start) * 1000),
        )

    def router(self) -> APIRouter:
        r = APIRouter()
        component = self

        @r.post("/v1/classify")
        async def classify(req: ClassifyRequest):
            if component.state != ServerState.RUNNING:
                raise HTTPException(status_code=503, detail="Classifiers not loaded")
            if not req.input.strip():
                raise HTTPException(status_code=400, detail="input must not be empty")
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                None, functools.partial(component.classify, req.input, req.tasks)
            )

        return r
