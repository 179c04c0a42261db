"""Tests for embedding providers."""

from __future__ import annotations

import math

import pytest

from bundestag_index.core.errors import MalformedResponseError, UpstreamHTTPError
from bundestag_index.ingest.embeddings import HashedEmbeddingModel, MistralEmbeddingProvider
from bundestag_index.resilience.retry import RetryPolicy


class FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = "") -> None:
        self.status_code = status_code
        self.payload = payload
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self.payload is None:
            raise ValueError("no json")
        return self.payload


class FakeSession:
    def __init__(self, *responses: FakeResponse) -> None:
        self.headers: dict[str, str] = {}
        self.responses = list(responses)
        self.requests: list[dict] = []

    def post(self, url: str, json=None, timeout=None) -> FakeResponse:
        self.requests.append({"url": url, "json": json})
        return self.responses.pop(0)


def _provider(session: FakeSession) -> MistralEmbeddingProvider:
    return MistralEmbeddingProvider(
        "key",
        dim=2,
        retry=RetryPolicy(name="embeddings-test", max_retries=1, sleep=lambda _s: None),
        session=session,
    )


def test_hashed_embeddings_are_deterministic_and_normalized() -> None:
    model = HashedEmbeddingModel(dim=64)
    first, second, empty = model.embed(["Wärmenetze im Bundestag", "Wärmenetze im Bundestag", ""])
    assert first == second
    assert len(first) == 64
    assert math.isclose(math.sqrt(sum(value * value for value in first)), 1.0)
    assert not any(empty)


def test_mistral_restores_input_order() -> None:
    session = FakeSession(
        FakeResponse(
            200,
            {"data": [{"index": 1, "embedding": [0.0, 1.0]}, {"index": 0, "embedding": [1.0, 0.0]}]},
        )
    )
    vectors = _provider(session).embed(["erste", "zweite"])
    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert session.requests[0]["json"] == {"model": "mistral-embed", "input": ["erste", "zweite"]}
    assert session.headers["Authorization"] == "Bearer key"


def test_mistral_retries_server_errors() -> None:
    session = FakeSession(
        FakeResponse(502, text="bad gateway"),
        FakeResponse(200, {"data": [{"index": 0, "embedding": [1.0, 0.0]}]}),
    )
    assert _provider(session).embed(["text"]) == [[1.0, 0.0]]
    assert len(session.requests) == 2


def test_mistral_rejects_short_responses() -> None:
    session = FakeSession(FakeResponse(200, {"data": [{"index": 0, "embedding": [1.0, 0.0]}]}))
    with pytest.raises(MalformedResponseError):
        _provider(session).embed(["a", "b"])


def test_mistral_surfaces_client_errors() -> None:
    session = FakeSession(FakeResponse(401, text="unauthorized"))
    with pytest.raises(UpstreamHTTPError):
        _provider(session).embed(["text"])
    assert len(session.requests) == 1


def test_mistral_requires_api_key() -> None:
    with pytest.raises(ValueError):
        MistralEmbeddingProvider("")


def test_empty_batch_skips_request() -> None:
    session = FakeSession()
    assert _provider(session).embed([]) == []
    assert session.requests == []
