"""Three-state circuit breaker."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, TypeVar

import requests

from bundestag_index.core.errors import CircuitOpenError, UpstreamHTTPError
from bundestag_index.core.logging import get_logger
from bundestag_index.core.metrics import CIRCUIT_STATE

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


_STATE_GAUGE = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


@dataclass(slots=True)
class StateTransition:
    from_state: CircuitState
    to_state: CircuitState
    at: float


@dataclass(slots=True)
class CircuitStats:
    name: str
    state: CircuitState
    failures: int = 0
    successes: int = 0
    total_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0
    total_rejected: int = 0
    last_failure_at: float | None = None
    transitions: list[StateTransition] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failures": self.failures,
            "successes": self.successes,
            "total_calls": self.total_calls,
            "total_failures": self.total_failures,
            "total_successes": self.total_successes,
            "total_rejected": self.total_rejected,
            "last_failure_at": self.last_failure_at,
            "transitions": [
                {"from": t.from_state.value, "to": t.to_state.value, "at": t.at}
                for t in self.transitions
            ],
        }


def upstream_failure(exc: BaseException) -> bool:
    """Only timeouts, connection errors and 5xx responses indicate an unhealthy upstream."""
    if isinstance(exc, UpstreamHTTPError):
        return exc.status >= 500
    return isinstance(exc, (requests.ConnectionError, requests.Timeout))


def any_failure(_exc: BaseException) -> bool:
    return True


class CircuitBreaker:
    """Fail fast against an upstream that keeps failing.

    CLOSED counts consecutive failures and opens at ``failure_threshold``.
    OPEN rejects every call until ``reset_timeout`` seconds have passed; the
    next read of :attr:`state` then moves to HALF_OPEN. HALF_OPEN admits at
    most ``half_open_max_requests`` probes at once; a single failing probe
    reopens the circuit and ``half_open_max_requests`` successes close it.
    Errors rejected by ``is_failure`` count as successes.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        half_open_max_requests: int = 3,
        is_failure: Callable[[BaseException], bool] = any_failure,
        clock: Callable[[], float] = time.monotonic,
        max_transitions: int = 20,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_max_requests = half_open_max_requests
        self.is_failure = is_failure
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._half_open_in_flight = 0
        self._opened_at: float | None = None
        self._last_failure_at: float | None = None
        self._total_calls = 0
        self._total_failures = 0
        self._total_successes = 0
        self._total_rejected = 0
        self._transitions: deque[StateTransition] = deque(maxlen=max_transitions)
        CIRCUIT_STATE.labels(breaker=name).set(_STATE_GAUGE[self._state])

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        probe = self._admit()
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            if self.is_failure(exc):
                self._record_failure(probe)
            else:
                self._record_success(probe)
            raise
        self._record_success(probe)
        return result

    def stats(self) -> CircuitStats:
        with self._lock:
            self._maybe_half_open()
            return CircuitStats(
                name=self.name,
                state=self._state,
                failures=self._failures,
                successes=self._successes,
                total_calls=self._total_calls,
                total_failures=self._total_failures,
                total_successes=self._total_successes,
                total_rejected=self._total_rejected,
                last_failure_at=self._last_failure_at,
                transitions=list(self._transitions),
            )

    def reset(self) -> None:
        with self._lock:
            self._transition(CircuitState.CLOSED)
            self._total_calls = 0
            self._total_failures = 0
            self._total_successes = 0
            self._total_rejected = 0
            self._last_failure_at = None

    def force_state(self, state: CircuitState) -> None:
        with self._lock:
            self._transition(CircuitState(state))

    # Internal helpers -------------------------------------------------

    def _admit(self) -> bool:
        with self._lock:
            self._maybe_half_open()
            if self._state is CircuitState.OPEN:
                self._total_rejected += 1
                raise CircuitOpenError(self.name, self._state.value)
            if self._state is CircuitState.HALF_OPEN:
                if self._half_open_in_flight >= self.half_open_max_requests:
                    self._total_rejected += 1
                    raise CircuitOpenError(self.name, self._state.value)
                self._half_open_in_flight += 1
                self._total_calls += 1
                return True
            self._total_calls += 1
            return False

    def _record_success(self, probe: bool) -> None:
        with self._lock:
            self._total_successes += 1
            if probe:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
            if self._state is CircuitState.HALF_OPEN:
                self._successes += 1
                if self._successes >= self.half_open_max_requests:
                    self._transition(CircuitState.CLOSED)
            elif self._state is CircuitState.CLOSED:
                self._failures = 0

    def _record_failure(self, probe: bool) -> None:
        with self._lock:
            self._total_failures += 1
            self._last_failure_at = self._clock()
            if probe:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
            if self._state is CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif self._state is CircuitState.CLOSED:
                self._failures += 1
                if self._failures >= self.failure_threshold:
                    self._transition(CircuitState.OPEN)

    def _maybe_half_open(self) -> None:
        if self._state is not CircuitState.OPEN or self._opened_at is None:
            return
        if self._clock() - self._opened_at >= self.reset_timeout:
            self._transition(CircuitState.HALF_OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        previous = self._state
        now = self._clock()
        self._state = new_state
        if new_state is CircuitState.CLOSED:
            self._failures = 0
            self._successes = 0
            self._opened_at = None
        elif new_state is CircuitState.OPEN:
            self._opened_at = now
            self._successes = 0
        elif new_state is CircuitState.HALF_OPEN:
            self._half_open_in_flight = 0
            self._successes = 0
        if previous is not new_state:
            self._transitions.append(StateTransition(from_state=previous, to_state=new_state, at=now))
            logger.warning("Circuit %s: %s -> %s", self.name, previous.value, new_state.value)
        CIRCUIT_STATE.labels(breaker=self.name).set(_STATE_GAUGE[new_state])


__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "CircuitStats",
    "StateTransition",
    "any_failure",
    "upstream_failure",
]
