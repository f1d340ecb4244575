"""Pytest configuration and fixtures shared across all test modules.

Environment variables are pinned before anything imports the settings module,
so tests never pick up a developer's .env file or a real Redis URL.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["STORE_BACKEND"] = "memory"
os.environ.pop("STORE_REDIS_URL", None)
os.environ.setdefault("LIMITER_INTERVAL_MILLIS", "60000")
os.environ.setdefault("LIMITER_MAX_IN_INTERVAL", "10")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from rolling_limiter.adapters.store.in_memory import InMemoryWindowStore  # noqa: E402
from rolling_limiter.core.rate_limit import reset_rate_limiter  # noqa: E402


class FakeClock:
    """Deterministic wall clock in UNIX seconds, stepped in whole microseconds."""

    def __init__(self, start_micros: int = 1_700_000_000_000_000) -> None:
        self.micros = start_micros

    def __call__(self) -> float:
        return self.micros / 1_000_000

    def advance_ms(self, millis: int) -> None:
        self.micros += millis * 1000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryWindowStore:
    return InMemoryWindowStore(clock=clock)


@pytest.fixture(autouse=True)
def _fresh_process_limiter():
    """Drop the cached process-wide limiter between tests."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()
