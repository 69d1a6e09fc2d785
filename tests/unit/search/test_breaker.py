"""Tests for the search circuit breaker."""

from __future__ import annotations

from searchhub.config import SearchCfg
from searchhub.search.breaker import CLOSED, HALF_OPEN, OPEN, CircuitBreaker


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _breaker(clock, threshold=3):
    return CircuitBreaker(threshold, reset_timeout=30.0, half_open_timeout=10.0, clock=clock)


def test_opens_after_threshold():
    clock = _Clock()
    breaker = _breaker(clock)
    for _ in range(3):
        assert breaker.allow()
        breaker.record_failure()
    assert breaker.state == OPEN
    assert not breaker.allow()


def test_success_resets_failure_count():
    breaker = _breaker(_Clock())
    breaker.record_failure()
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()
    assert breaker.state == CLOSED


def test_half_open_allows_single_call():
    clock = _Clock()
    breaker = _breaker(clock, threshold=1)
    breaker.record_failure()
    clock.now = 29.0
    assert not breaker.allow()
    clock.now = 30.0
    assert breaker.allow()
    assert breaker.state == HALF_OPEN
    assert not breaker.allow()


def test_half_open_success_closes():
    clock = _Clock()
    breaker = _breaker(clock, threshold=1)
    breaker.record_failure()
    clock.now = 31.0
    breaker.allow()
    breaker.record_success()
    assert breaker.state == CLOSED
    assert breaker.allow()


def test_half_open_failure_reopens():
    clock = _Clock()
    breaker = _breaker(clock, threshold=5)
    for _ in range(5):
        breaker.record_failure()
    clock.now = 31.0
    assert breaker.allow()
    breaker.record_failure()
    assert breaker.state == OPEN
    assert not breaker.allow()


def test_from_config():
    breaker = CircuitBreaker.from_config(SearchCfg(breaker_failure_threshold=1))
    breaker.record_failure()
    assert breaker.state == OPEN
