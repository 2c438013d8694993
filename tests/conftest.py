"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any project import so that the global
settings never pick up a developer's .env file or real store credentials.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

for _name in ("UPSTASH_REDIS_REST_URL", "UPSTASH_REDIS_REST_TOKEN"):
    os.environ.pop(_name, None)

os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-admin-key-123,test-admin-key-456")
os.environ.setdefault("LOG_FORMAT", "plain")

from typing import Callable
from unittest.mock import Mock

import pytest

from portal_limiter.adapters.rate_limit.base import AbstractWindowStore, RateLimitConfig
from portal_limiter.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from portal_limiter.adapters.rate_limit.limiter import SlidingWindowRateLimiter

_SHARED_STORE = object()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": "test-admin-key-123"}


@pytest.fixture
def clock() -> Mock:
    """Controllable time source starting at UNIX time 1000."""
    return Mock(return_value=1000.0)


@pytest.fixture
def store() -> InMemorySlidingWindowStore:
    return InMemorySlidingWindowStore()


@pytest.fixture
def make_limiter(
    store: InMemorySlidingWindowStore, clock: Mock
) -> Callable[..., SlidingWindowRateLimiter]:
    """Build limiters on the shared in-memory store and mocked clock."""

    def _make(
        requests: int = 3,
        window_seconds: int = 10,
        *,
        window_store: AbstractWindowStore | None | object = _SHARED_STORE,
        **kwargs,
    ) -> SlidingWindowRateLimiter:
        kwargs.setdefault("prefix", "test:ratelimit")
        kwargs.setdefault("clock", clock)
        return SlidingWindowRateLimiter(
            RateLimitConfig(requests=requests, window_seconds=window_seconds),
            store if window_store is _SHARED_STORE else window_store,
            **kwargs,
        )

    return _make
