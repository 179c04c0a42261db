"""Error types raised by the indexer and its upstream clients."""

from __future__ import annotations

from typing import Any

RATE_LIMIT_MARKERS = ("Rate-Limit", "Enodia")


class IndexerError(Exception):
    """Base exception for indexer failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class UpstreamHTTPError(IndexerError):
    """Non-success HTTP response from an upstream service."""

    def __init__(self, status: int, body: str = "", url: str | None = None) -> None:
        self.status = status
        self.body = body
        details: dict[str, Any] = {"status": status}
        if url:
            details["url"] = url
        super().__init__(f"Upstream returned HTTP {status}: {body[:200]}", details)

    @property
    def retryable(self) -> bool:
        return self.status >= 500 or self.status == 429


class UpstreamRateLimitError(UpstreamHTTPError):
    """Upstream refused the request because of its own rate limit."""


class MalformedResponseError(IndexerError):
    """Upstream payload could not be interpreted."""


class CircuitOpenError(IndexerError):
    """Call rejected without being attempted because the breaker is open."""

    status = 503

    def __init__(self, name: str, state: str) -> None:
        self.name = name
        self.state = state
        super().__init__(f"Circuit '{name}' is {state}; request rejected", {"breaker": name, "state": state})


class RateLimitedError(IndexerError):
    """Local rate limiter could not grant a token within the allowed wait."""

    status = 429
    code = "RATE_LIMITED"

    def __init__(self, name: str, wait: float, max_wait: float) -> None:
        self.name = name
        self.wait = wait
        self.max_wait = max_wait
        super().__init__(
            f"Rate limit '{name}' exceeded: wait {wait:.2f}s > {max_wait:.2f}s",
            {"limiter": name, "wait": round(wait, 3)},
        )


class PassAlreadyRunning(IndexerError):
    """An indexing pass is already in progress."""

    def __init__(self) -> None:
        super().__init__("Indexing pass already in progress")


def is_rate_limit_message(text: str | None) -> bool:
    """Return True when an upstream message announces a rate limit."""
    if not text:
        return False
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, UpstreamRateLimitError):
        return True
    if isinstance(exc, UpstreamHTTPError) and exc.status == 429:
        return True
    return is_rate_limit_message(str(exc))


__all__ = [
    "IndexerError",
    "UpstreamHTTPError",
    "UpstreamRateLimitError",
    "MalformedResponseError",
    "CircuitOpenError",
    "RateLimitedError",
    "PassAlreadyRunning",
    "is_rate_limit_message",
    "is_rate_limit_error",
]
