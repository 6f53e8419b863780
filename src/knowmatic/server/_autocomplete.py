# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Autocomplete component: wraps the generation engine and exposes completion routes."""

import asyncio
import functools
import json
import logging
import os
import threading

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from knowmatic.api import Autocompleter
from knowmatic.errors import GenerationFault
from knowmatic.generation import astream
from knowmatic.token_utils import IncrementalDecoder
from knowmatic.utils import generation_kwargs

from ._component import Component
from ._helpers import make_id, now
from ._models import (
    CompletionChoice,
    CompletionRequest,
    CompletionResponse,
    ModelInfo,
    ModelListResponse,
    ServerState,
    UsageInfo,
)

log = logging.getLogger(__name__)


class Autocomplete(Component):
    """Exposes /v1/models and /v1/completions over the autocomplete model."""

    def __init__(
        self,
        models_dir: str | None = None,
        num_threads: int = 0,
        autocompleter: Autocompleter | None = None,
    ):
        self._models_dir = models_dir
        self._num_threads = num_threads
        self.autocompleter = autocompleter
        self.model_name: str = "unknown"
        self.state: ServerState = ServerState.NO_MODEL

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self.autocompleter is None:
            loop = asyncio.get_running_loop()
            self.autocompleter = await loop.run_in_executor(
                None,
                functools.partial(Autocompleter.load, self._models_dir, self._num_threads),
            )
        if self._models_dir:
            self.model_name = os.path.basename(os.path.normpath(self._models_dir))
        else:
            self.model_name = self.autocompleter.engine.metadata.model_type or "knowmatic"
        self.state = ServerState.RUNNING

    async def stop(self) -> None:
        self.state = ServerState.NO_MODEL

    # -- router --------------------------------------------------------------

    def router(self) -> APIRouter:
        r = APIRouter()
        component = self  # closure reference

        @r.get("/v1/models")
        async def list_models():
            if component.state != ServerState.RUNNING:
                return ModelListResponse(data=[])
            return ModelListResponse(data=[ModelInfo(id=component.model_name)])

        @r.post("/v1/completions")
        async def completions(req: CompletionRequest):
            if component.autocompleter is None or component.state != ServerState.RUNNING:
                raise HTTPException(status_code=503, detail="No model loaded")

            autocompleter = component.autocompleter
            options = generation_kwargs(
                max_new_tokens=req.max_tokens,
                temperature=req.temperature,
                top_k=req.top_k,
                min_confidence=req.min_confidence,
                repetition_penalty=req.repetition_penalty,
            )
            model = req.model or component.model_name

            if req.stream:
                return StreamingResponse(
                    _stream_completion(autocompleter, req.prompt, options, model),
                    media_type="text/event-stream",
                )

            stream = autocompleter.generate(req.prompt, **options)
            decoder = IncrementalDecoder(autocompleter.tokenizer)
            full_text = ""
            try:
                async for token_id in astream(stream):
                    full_text += decoder.decode(token_id)
            except GenerationFault as e:
                log.warning("Completion cut short: %s", e)
            full_text += decoder.flush()

            prompt_tokens = len(autocompleter.tokenizer.encode_for_generation(req.prompt.strip()))
            completion_tokens = len(stream.tokens)
            return CompletionResponse(
                id=make_id(),
                created=now(),
                model=model,
                choices=[CompletionChoice(text=full_text, finish_reason=_finish_reason(stream))],
                usage=UsageInfo(
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                    total_tokens=prompt_tokens + completion_tokens,
                ),
            )

        return r


def _finish_reason(stream) -> str:
    """``length`` when the token cap was hit, else ``stop``."""
    if stream.tokens and len(stream.tokens) >= stream.options.max_new_tokens:
        return "length"
    return "stop"


# ---------------------------------------------------------------------------
# Streaming helper (module-level async generator)
# ---------------------------------------------------------------------------


async def _stream_completion(autocompleter: Autocompleter, prompt: str, options: dict, model: str):
    req_id = make_id()
    created = now()

    # Set when the client goes away so the engine stops at the next step.
    cancel = threading.Event()
    stream = autocompleter.generate(prompt, cancel, **options)
    decoder = IncrementalDecoder(autocompleter.tokenizer)
    try:
        async for token_id in astream(stream):
            text = decoder.decode(token_id)
            if not text:
                continue
            chunk = {
                "id": req_id,
                "object": "text_completion",
                "created": created,
                "model": model,
                "choices": [{"index": 0, "text": text, "finish_reason": None}],
            }
            yield f"data: {json.dumps(chunk)}\n\n"
    except GenerationFault as e:
        log.warning("Streaming completion cut short: %s", e)
    finally:
        cancel.set()

    chunk = {
        "id": req_id,
        "object": "text_completion",
        "created": created,
        "model": model,
        "choices": [{"index": 0, "text": decoder.flush(), "finish_reason": _finish_reason(stream)}],
    }
    yield f"data: {json.dumps(chunk)}\n\n"
    yield "data: [DONE]\n\n"
