# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Pydantic request/response models for the knowmatic API."""

import enum

from pydantic import BaseModel, field_validator

TASKS = ("difficulty", "effort", "code")


# ---------------------------------------------------------------------------
# Completion models
# ---------------------------------------------------------------------------


class CompletionRequest(BaseModel):
    model: str = ""
    prompt: str
    temperature: float | None = None
    top_k: int | None = None
    max_tokens: int | None = None
    min_confidence: float | None = None
    repetition_penalty: float | None = None
    stream: bool = False

    @field_validator("temperature")
    @classmethod
    def _check_temperature(cls, v: float | None) -> float | None:
        if v is not None and v < 0:
            raise ValueError("temperature must be >= 0")
        return v

    @field_validator("top_k")
    @classmethod
    def _check_top_k(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("top_k must be >= 1")
        return v

    @field_validator("max_tokens")
    @classmethod
    def _check_max_tokens(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("max_tokens must be >= 0")
        return v

    @field_validator("min_confidence")
    @classmethod
    def _check_min_confidence(cls, v: float | None) -> float | None:
        if v is not None and not (0 <= v <= 1.0):
            raise ValueError("min_confidence must be in [0, 1]")
        return v

    @field_validator("repetition_penalty")
    @classmethod
    def _check_repetition_penalty(cls, v: float | None) -> float | None:
        if v is not None and v < 0:
            raise ValueError("repetition_penalty must be >= 0")
        return v


class CompletionChoice(BaseModel):
    index: int = 0
    text: str = ""
    finish_reason: str | None = None


class UsageInfo(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CompletionResponse(BaseModel):
    id: str
    object: str = "text_completion"
    created: int
    model: str
    choices: list[CompletionChoice]
    usage: UsageInfo | None = None


# ---------------------------------------------------------------------------
# Classification models
# ---------------------------------------------------------------------------


class ClassifyRequest(BaseModel):
    input: str
    tasks: list[str] = list(TASKS)

    @field_validator("tasks")
    @classmethod
    def _check_tasks(cls, v: list[str]) -> list[str]:
        unknown = sorted(set(v) - set(TASKS))
        if unknown:
            raise ValueError(f"unknown tasks {unknown}; expected a subset of {list(TASKS)}")
        if not v:
            raise ValueError("tasks must not be empty")
        return v


class PredictionInfo(BaseModel):
    label: str
    score: float


class ClassifyResponse(BaseModel):
    id: str
    object: str = "classification"
    created: int
    results: dict[str, list[PredictionInfo]]
    code_detected: bool = False
    suggested_model: str | None = None
    latency_ms: int = 0


# ---------------------------------------------------------------------------
# Model management
# ---------------------------------------------------------------------------


class ModelInfo(BaseModel):
    id: str
    object: str = "model"
    created: int = 0
    owned_by: str = "local"


class ModelListResponse(BaseModel):
    object: str = "list"
    data: list[ModelInfo]


class ServerState(enum.Enum):
    RUNNING = "running"
    NO_MODEL = "no_model"
