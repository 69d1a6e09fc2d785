"""Circuit breaker guarding query-time provider calls.

closed     calls pass; consecutive failures are counted
open       calls are refused until the reset and half-open timeouts pass
half-open  one probe call passes; success closes, failure reopens
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from searchhub.config import SearchCfg

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half-open"


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        half_open_timeout: float = 10.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._half_open_timeout = half_open_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CLOSED
        self._failures = 0
        self._ready_at = 0.0
        self._probe_in_flight = False

    @classmethod
    def from_config(cls, config: SearchCfg, **kwargs: object) -> CircuitBreaker:
        return cls(
            config.breaker_failure_threshold,
            config.breaker_reset_timeout_seconds,
            config.breaker_half_open_timeout_seconds,
            **kwargs,
        )

    @property
    def state(self) -> str:
        return self._state

    def allow(self) -> bool:
        """Return True if a call may proceed now."""
        with self._lock:
            if self._state == OPEN:
                if self._clock() < self._ready_at:
                    return False
                self._state = HALF_OPEN
                self._probe_in_flight = False
            if self._state == HALF_OPEN:
                if self._probe_in_flight:
                    return False
                self._probe_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            self._state = CLOSED
            self._failures = 0
            self._ready_at = 0.0
            self._probe_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state == HALF_OPEN or self._failures >= self._threshold:
                now = self._clock()
                self._state = OPEN
                self._failures = 0
                self._probe_in_flight = False
                self._ready_at = max(now + self._reset_timeout, now + self._half_open_timeout)
