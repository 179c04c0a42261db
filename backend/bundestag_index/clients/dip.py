"""Client for the DIP API of the German Bundestag."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

import requests

from bundestag_index.core.errors import (
    MalformedResponseError,
    UpstreamHTTPError,
    UpstreamRateLimitError,
    is_rate_limit_message,
)
from bundestag_index.core.logging import get_logger, log_context
from bundestag_index.resilience.circuit_breaker import CircuitBreaker, upstream_failure
from bundestag_index.resilience.rate_limiter import RateLimiter
from bundestag_index.resilience.retry import RetryPolicy

logger = get_logger(__name__)

MAX_ROWS = 100


@dataclass(slots=True)
class ListingPage:
    documents: list[dict[str, Any]] = field(default_factory=list)
    cursor: str | None = None
    num_found: int | None = None


class DipClient:
    """Every request passes the rate limiter, then the circuit breaker, then retries."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        limiter: RateLimiter | None = None,
        breaker: CircuitBreaker | None = None,
        retry: RetryPolicy | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.limiter = limiter or RateLimiter("dip")
        self.breaker = breaker or CircuitBreaker("dip", is_failure=upstream_failure)
        self.retry = retry or RetryPolicy(name="dip")
        self.session = session or requests.Session()
        self.session.headers["Accept"] = "application/json"

    def list_documents(
        self,
        endpoint: str,
        period: int | None = None,
        updated_since: datetime | None = None,
        cursor: str | None = None,
        rows: int = MAX_ROWS,
        document_types: Sequence[str] = (),
    ) -> ListingPage:
        params: dict[str, Any] = {"rows": min(rows, MAX_ROWS)}
        if period is not None:
            params["f.wahlperiode"] = period
        if document_types:
            params["f.drucksachetyp"] = list(document_types)
        if updated_since is not None:
            params["f.aktualisiert.start"] = _format_since(updated_since)
        if cursor:
            params["cursor"] = cursor
        data = self._get_json(f"/{endpoint}", params)
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Listing for {endpoint} is not an object")
        documents = data.get("documents") or []
        num_found = data.get("numFound")
        return ListingPage(
            documents=list(documents),
            cursor=data.get("cursor"),
            num_found=int(num_found) if num_found is not None else None,
        )

    def get_document(self, endpoint: str, source_id: str) -> dict[str, Any] | None:
        return self._get_json(f"/{endpoint}/{source_id}", {}, allow_not_found=True)

    def get_text(self, text_endpoint: str, source_id: str) -> str | None:
        data = self.get_document(text_endpoint, source_id)
        if not data:
            return None
        text = data.get("text")
        return text if isinstance(text, str) and text.strip() else None

    # Internal helpers -------------------------------------------------

    def _get_json(self, path: str, params: dict[str, Any], allow_not_found: bool = False) -> Any:
        self.limiter.acquire()
        return self.breaker.call(self.retry.call, self._send, path, params, allow_not_found)

    def _send(self, path: str, params: dict[str, Any], allow_not_found: bool) -> Any:
        query = {"apikey": self.api_key, "format": "json", **params}
        logger.debug("Requesting %s", path, extra=log_context(params=params))
        resp = self.session.get(f"{self.base_url}{path}", params=query, timeout=self.timeout)
        if resp.status_code == 404 and allow_not_found:
            return None
        if resp.status_code == 429 or (not resp.ok and is_rate_limit_message(resp.text)):
            raise UpstreamRateLimitError(resp.status_code, resp.text, url=path)
        if not resp.ok:
            raise UpstreamHTTPError(resp.status_code, resp.text, url=path)
        try:
            return resp.json()
        except ValueError as exc:
            if is_rate_limit_message(resp.text):
                raise UpstreamRateLimitError(resp.status_code, resp.text, url=path) from exc
            raise MalformedResponseError(f"DIP returned invalid JSON for {path}") from exc


def _format_since(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


__all__ = ["DipClient", "ListingPage"]
