"""Tests for the DIP API client."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from bundestag_index.clients.dip import DipClient
from bundestag_index.core.errors import MalformedResponseError, UpstreamHTTPError, UpstreamRateLimitError
from bundestag_index.resilience.circuit_breaker import CircuitBreaker, upstream_failure
from bundestag_index.resilience.rate_limiter import RateLimiter
from bundestag_index.resilience.retry import RetryPolicy


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str | None = None) -> None:
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        return json.loads(self.text)


class FakeSession:
    def __init__(self, *responses: FakeResponse) -> None:
        self.headers: dict[str, str] = {}
        self.responses = list(responses)
        self.calls: list[dict] = []

    def get(self, url: str, params=None, timeout=None) -> FakeResponse:
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        return self.responses.pop(0)


def _client(session: FakeSession, max_retries: int = 0) -> DipClient:
    return DipClient(
        "https://dip.example/api/v1/",
        api_key="secret",
        limiter=RateLimiter("dip-test", requests_per_minute=6000, burst_size=100),
        breaker=CircuitBreaker("dip-test", is_failure=upstream_failure),
        retry=RetryPolicy(name="dip-test", max_retries=max_retries, sleep=lambda _s: None),
        session=session,
    )


def test_listing_params_and_page() -> None:
    session = FakeSession(
        FakeResponse(payload={"documents": [{"id": "1"}, {"id": "2"}], "cursor": "AoE", "numFound": 2})
    )
    page = _client(session).list_documents(
        "drucksache",
        period=20,
        updated_since=datetime(2024, 5, 1, 11, 40, tzinfo=timezone.utc),
        cursor="prev",
        rows=500,
        document_types=["Kleine Anfrage", "Große Anfrage"],
    )
    assert [doc["id"] for doc in page.documents] == ["1", "2"]
    assert page.cursor == "AoE"
    assert page.num_found == 2

    call = session.calls[0]
    assert call["url"] == "https://dip.example/api/v1/drucksache"
    assert call["params"] == {
        "apikey": "secret",
        "format": "json",
        "rows": 100,
        "f.wahlperiode": 20,
        "f.drucksachetyp": ["Kleine Anfrage", "Große Anfrage"],
        "f.aktualisiert.start": "2024-05-01T11:40:00Z",
        "cursor": "prev",
    }


def test_missing_document_returns_none() -> None:
    session = FakeSession(FakeResponse(404, text="not found"))
    assert _client(session).get_text("drucksache-text", "999") is None


def test_text_is_extracted() -> None:
    session = FakeSession(FakeResponse(payload={"id": "1", "text": "Volltext"}), FakeResponse(payload={"id": "2"}))
    client = _client(session)
    assert client.get_text("drucksache-text", "1") == "Volltext"
    assert client.get_text("drucksache-text", "2") is None
    assert session.calls[0]["url"].endswith("/drucksache-text/1")


def test_rate_limit_status_is_classified() -> None:
    session = FakeSession(FakeResponse(429, text="Too Many Requests"), FakeResponse(429, text="Too Many Requests"))
    with pytest.raises(UpstreamRateLimitError):
        _client(session, max_retries=1).list_documents("vorgang", period=20)
    assert len(session.calls) == 2


def test_rate_limit_page_instead_of_json() -> None:
    session = FakeSession(FakeResponse(200, text="<html>Enodia challenge</html>"))
    with pytest.raises(UpstreamRateLimitError):
        _client(session).list_documents("vorgang")


def test_invalid_json_is_malformed() -> None:
    session = FakeSession(FakeResponse(200, text="<html>maintenance</html>"))
    with pytest.raises(MalformedResponseError):
        _client(session).list_documents("vorgang")


def test_client_errors_are_not_retried() -> None:
    session = FakeSession(FakeResponse(401, text="invalid api key"))
    with pytest.raises(UpstreamHTTPError) as excinfo:
        _client(session, max_retries=3).list_documents("vorgang")
    assert excinfo.value.status == 401
    assert len(session.calls) == 1


def test_server_errors_open_the_breaker() -> None:
    session = FakeSession(*[FakeResponse(503, text="unavailable") for _ in range(5)])
    client = _client(session)
    for _ in range(5):
        with pytest.raises(UpstreamHTTPError):
            client.list_documents("vorgang")
    assert client.breaker.state.value == "open"
