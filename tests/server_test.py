# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""
Tests for the knowmatic HTTP API.

The app is driven in-process with FastAPI's TestClient; engines are the
fixture stubs, so no model files are needed.
"""

import json

import pytest
from fastapi.testclient import TestClient

from knowmatic.server import Autocomplete, Classifier, Server


@pytest.fixture
def client(autocompleter, tokenizer, classifiers):
    server = Server(
        Autocomplete(autocompleter=autocompleter),
        Classifier(tokenizer=tokenizer, classifiers=classifiers),
    )
    with TestClient(server.app) as c:
        yield c


def sse_events(body: str) -> list[str]:
    return [line[len("data: "):] for line in body.splitlines() if line.startswith("data: ")]


# ---------------------------------------------------------------------------
# Server composition
# ---------------------------------------------------------------------------


def test_server_requires_components():
    with pytest.raises(ValueError):
        Server()


def test_server_rejects_duplicate_components(autocompleter):
    with pytest.raises(ValueError, match="Duplicate"):
        Server(Autocomplete(autocompleter=autocompleter), Autocomplete(autocompleter=autocompleter))


def test_not_started_returns_503(autocompleter):
    app = Server(Autocomplete(autocompleter=autocompleter)).app
    c = TestClient(app)
    resp = c.post("/v1/completions", json={"prompt": "hello"})
    assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Completions
# ---------------------------------------------------------------------------


def test_list_models(client):
    resp = client.get("/v1/models")
    assert resp.status_code == 200
    data = resp.json()
    assert data["object"] == "list"
    assert [m["id"] for m in data["data"]] == ["knowmatic"]


def test_completion(client):
    resp = client.post("/v1/completions", json={"prompt": "hello"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["object"] == "text_completion"
    assert body["id"].startswith("cmpl-")
    assert body["choices"][0]["text"] == " world"
    assert body["choices"][0]["finish_reason"] == "stop"
    assert body["usage"] == {"prompt_tokens": 2, "completion_tokens": 1, "total_tokens": 3}


def test_completion_hits_token_limit(client):
    resp = client.post("/v1/completions", json={"prompt": "hello", "max_tokens": 1})
    assert resp.json()["choices"][0]["finish_reason"] == "length"


def test_completion_with_zero_tokens(client):
    resp = client.post("/v1/completions", json={"prompt": "hello", "max_tokens": 0})
    body = resp.json()
    assert body["choices"][0]["text"] == ""
    assert body["usage"]["completion_tokens"] == 0


def test_streaming_completion(client):
    resp = client.post("/v1/completions", json={"prompt": "hello", "stream": True})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")

    events = sse_events(resp.text)
    assert events[-1] == "[DONE]"
    chunks = [json.loads(e) for e in events[:-1]]
    assert "".join(c["choices"][0]["text"] for c in chunks) == " world"
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
    assert len({c["id"] for c in chunks}) == 1


@pytest.mark.parametrize(
    "field, value",
    [
        ("top_k", 0),
        ("temperature", -1.0),
        ("max_tokens", -5),
        ("min_confidence", 1.5),
        ("repetition_penalty", -0.1),
    ],
)
def test_completion_validation(client, field, value):
    resp = client.post("/v1/completions", json={"prompt": "hello", field: value})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def test_classify_prompt(client):
    resp = client.post("/v1/classify", json={"input": "hello world"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["object"] == "classification"
    assert set(body["results"]) == {"difficulty", "effort"}
    assert body["results"]["difficulty"][0]["label"] == "Medium"
    assert body["results"]["effort"][0]["label"] == "low"
    assert body["code_detected"] is False
    assert body["suggested_model"] == "Sonnet"


def test_classify_code_block(client, classifiers):
    text = "fix this\n```python\nhello\n```"
    resp = client.post("/v1/classify", json={"input": text, "tasks": ["code"]})
    body = resp.json()
    assert body["code_detected"] is True
    assert list(body["results"]) == ["code"]
    assert body["results"]["code"][0]["label"] == "python"
    assert body["suggested_model"] is None
    assert classifiers["difficulty"].session.feeds == []


def test_classify_scores_are_probabilities(client):
    body = client.post("/v1/classify", json={"input": "hello", "tasks": ["difficulty"]}).json()
    scores = [p["score"] for p in body["results"]["difficulty"]]
    assert scores == sorted(scores, reverse=True)
    assert sum(scores) == pytest.approx(1.0, abs=1e-5)


def test_classify_rejects_unknown_task(client):
    resp = client.post("/v1/classify", json={"input": "hello", "tasks": ["sentiment"]})
    assert resp.status_code == 422


def test_classify_rejects_blank_input(client):
    resp = client.post("/v1/classify", json={"input": "   "})
    assert resp.status_code == 400
