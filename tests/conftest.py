"""Global pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from crosscache.cache import runtime
from crosscache.cache.store import CacheStore


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    """Create a fresh fake clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> CacheStore:
    """Create an isolated store driven by the fake clock."""
    return CacheStore(default_ttl_ms=5_000, clock=clock)


@pytest.fixture(autouse=True)
def reset_cache_runtime():
    """Discard process-wide cache instances between tests."""
    runtime.reset_instance()
    yield
    runtime.reset_instance()
