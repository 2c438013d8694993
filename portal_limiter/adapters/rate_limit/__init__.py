"""Rate limiting adapters.

This package holds the sliding-window limiter and the window stores it can run
on: Upstash Redis over REST for shared production counters, and an in-memory
log for local development and tests.
"""

from portal_limiter.adapters.rate_limit.base import (
    AbstractWindowStore,
    RateLimitConfig,
    RateLimitDecision,
    StoreResult,
    WindowState,
)
from portal_limiter.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from portal_limiter.adapters.rate_limit.limiter import SlidingWindowRateLimiter

__all__ = [
    "AbstractWindowStore",
    "InMemorySlidingWindowStore",
    "RateLimitConfig",
    "RateLimitDecision",
    "SlidingWindowRateLimiter",
    "StoreResult",
    "WindowState",
]
