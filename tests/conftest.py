"""Shared pytest fixtures.

Provides frozen clocks for calendar and rate limit logic, well-formed
anonymous user IDs and a ready vote store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from slopwatch.api.store import VoteStore


class FrozenClock:
    """Aware UTC datetime source that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class ManualTimer:
    """Monotonic seconds source for the rate limiter."""

    def __init__(self, value: float = 1000.0):
        self.value = value

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at 2026-01-12 12:00 UTC."""
    return FrozenClock(datetime(2026, 1, 12, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def timer() -> ManualTimer:
    return ManualTimer()


@pytest.fixture
def user_a() -> str:
    return "a" * 32


@pytest.fixture
def user_b() -> str:
    return "b" * 32


@pytest.fixture
def user_c() -> str:
    return "c" * 32


@pytest.fixture
def store(clock: FrozenClock) -> VoteStore:
    """Empty store without rate limiting or persistence."""
    return VoteStore(clock=clock)


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as exercising the HTTP API"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running"
    )
