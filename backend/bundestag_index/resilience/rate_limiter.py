"""Token bucket rate limiter."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, TypeVar

from bundestag_index.core.errors import RateLimitedError
from bundestag_index.core.logging import get_logger
from bundestag_index.core.metrics import THROTTLED

logger = get_logger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Token bucket holding up to ``burst_size`` tokens refilled at ``requests_per_minute``.

    A caller that finds the bucket empty reserves the next token and sleeps
    until it is due, unless that wait exceeds ``max_wait``.
    """

    def __init__(
        self,
        name: str,
        requests_per_minute: int = 60,
        burst_size: int = 10,
        max_wait: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if requests_per_minute <= 0 or burst_size <= 0:
            raise ValueError("requests_per_minute and burst_size must be positive")
        self.name = name
        self.requests_per_minute = requests_per_minute
        self.capacity = float(burst_size)
        self.max_wait = max_wait
        self._rate = requests_per_minute / 60.0
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(burst_size)
        self._last_refill = clock()
        self._total_requests = 0
        self._throttled = 0
        self._rejected = 0
        self._total_wait = 0.0

    def acquire(self) -> float:
        """Take one token, sleeping if necessary; return the seconds waited."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                self._total_requests += 1
                return 0.0
            wait = (1.0 - self._tokens) / self._rate
            if wait > self.max_wait:
                self._rejected += 1
                raise RateLimitedError(self.name, wait, self.max_wait)
            self._tokens -= 1.0
            self._total_requests += 1
            self._throttled += 1
            self._total_wait += wait
        THROTTLED.labels(limiter=self.name).inc()
        logger.debug("Rate limiter %s waiting %.2fs", self.name, wait)
        self._sleep(wait)
        return wait

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        self.acquire()
        return fn(*args, **kwargs)

    def can_proceed(self) -> bool:
        with self._lock:
            self._refill()
            return self._tokens >= 1.0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            self._refill()
            return {
                "name": self.name,
                "available_tokens": round(max(self._tokens, 0.0), 3),
                "capacity": self.capacity,
                "requests_per_minute": self.requests_per_minute,
                "total_requests": self._total_requests,
                "throttled": self._throttled,
                "rejected": self._rejected,
                "total_wait_seconds": round(self._total_wait, 3),
            }

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._last_refill = now
        self._tokens = min(self.capacity, self._tokens + elapsed * self._rate)


__all__ = ["RateLimiter"]
