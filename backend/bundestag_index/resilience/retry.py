"""Retry policy with exponential backoff for upstream calls."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from bundestag_index.core.errors import UpstreamHTTPError
from bundestag_index.core.logging import get_logger
from bundestag_index.core.metrics import RETRIES

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RetryEvent:
    attempt: int
    max_retries: int
    delay: float
    error: BaseException


def is_retryable(exc: BaseException) -> bool:
    """Connection failures, timeouts, HTTP 5xx and 429 are worth another attempt."""
    if isinstance(exc, UpstreamHTTPError):
        return exc.retryable
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    return False


class RetryPolicy:
    """Bounded retries with capped exponential backoff and jitter."""

    def __init__(
        self,
        name: str = "default",
        max_retries: int = 3,
        base_delay: float = 0.1,
        max_delay: float = 5.0,
        jitter: float = 0.1,
        retryable: Callable[[BaseException], bool] = is_retryable,
        on_retry: Callable[[RetryEvent], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.name = name
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.retryable = retryable
        self.on_retry = on_retry
        self._sleep = sleep

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay)
            + wait_random(0, self.jitter),
            retry=retry_if_exception(self.retryable),
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(fn, *args, **kwargs)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        RETRIES.labels(target=self.name).inc()
        logger.warning(
            "Retry %s/%s for %s in %.2fs: %s",
            retry_state.attempt_number,
            self.max_retries,
            self.name,
            delay,
            error,
        )
        if self.on_retry is not None and error is not None:
            self.on_retry(
                RetryEvent(
                    attempt=retry_state.attempt_number,
                    max_retries=self.max_retries,
                    delay=delay,
                    error=error,
                )
            )


__all__ = ["RetryEvent", "RetryPolicy", "is_retryable"]
