"""Sliding-window rate limiter with fail-open degradation.

The limiter owns the quota and the key layout; counters live in the window
store. Store failures never reach the caller: every store call is wrapped in a
``StoreResult`` and a failed result collapses to an "allow" decision, so an
outage of the shared counter service cannot take the portal down.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, TypeVar

from portal_limiter.adapters.rate_limit.base import (
    AbstractWindowStore,
    RateLimitConfig,
    RateLimitDecision,
    StoreResult,
    WindowState,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlidingWindowRateLimiter:
    """Per-identifier sliding-window quota on top of a shared window store.

    One instance is built per limiter profile at process start and injected
    into the request handlers. The only local state is the store handle.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        store: AbstractWindowStore | None,
        *,
        prefix: str,
        namespace: str | None = None,
        name: str = "rate_limiter",
        timeout_seconds: float = 0.3,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Quota enforced for every identifier.
            store: Shared window store, or None when no store is configured
                (the limiter then always allows).
            prefix: Key prefix scoping this limiter inside the store.
            namespace: Optional tag prepended to identifiers (e.g. "customer").
            name: Limiter name used in log records.
            timeout_seconds: Upper bound for a single store call.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If timeout_seconds is not positive.
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._config = config
        self._store = store
        self._prefix = prefix
        self._namespace = namespace
        self._name = name
        self._timeout_seconds = timeout_seconds
        self._clock = clock

        if store is None:
            logger.warning(
                "rate_limit.store_unconfigured",
                extra={
                    "limiter": name,
                    "hint": "Set UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN",
                },
            )

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._name

    @property
    def store_available(self) -> bool:
        return self._store is not None

    def build_key(self, identifier: str) -> str:
        """Map an identifier to its store key (``prefix:[namespace:]identifier``)."""
        if self._namespace:
            identifier = f"{self._namespace}:{identifier}"
        return f"{self._prefix}:{identifier}"

    def _fail_open(self, now: float) -> RateLimitDecision:
        return RateLimitDecision(
            success=True,
            limit=self._config.requests,
            remaining=self._config.requests,
            reset=int(now) + self._config.window_seconds,
        )

    def _to_decision(self, state: WindowState, now: float) -> RateLimitDecision:
        window = self._config.window_seconds
        if state.oldest is not None:
            reset = int(math.ceil(state.oldest + window))
        else:
            reset = int(now) + window

        retry_after = None
        if not state.allowed:
            oldest = state.oldest if state.oldest is not None else now
            retry_after = max(1, int(math.ceil(oldest + window - now)))

        return RateLimitDecision(
            success=state.allowed,
            limit=self._config.requests,
            remaining=max(0, self._config.requests - state.count),
            reset=reset,
            retry_after=retry_after,
        )

    async def _call_store(
        self,
        operation: str,
        identifier: str,
        call: Callable[[], Awaitable[T]],
    ) -> StoreResult[T]:
        """Run one store call under the timeout and capture its outcome."""
        try:
            value = await asyncio.wait_for(call(), timeout=self._timeout_seconds)
        except Exception as exc:  # noqa: BLE001 - any store failure means fail open
            logger.warning(
                "rate_limit.store_error",
                extra={
                    "limiter": self._name,
                    "operation": operation,
                    "identifier": identifier,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc) or "timeout",
                },
            )
            return StoreResult(error=exc)
        return StoreResult(value=value)

    async def _evaluate(self, operation: str, identifier: str, *, record: bool) -> RateLimitDecision:
        now = self._clock()
        if self._store is None:
            logger.debug(
                "rate_limit.bypassed",
                extra={"limiter": self._name, "operation": operation, "reason": "store_unconfigured"},
            )
            return self._fail_open(now)

        store = self._store
        key = self.build_key(identifier)
        method = store.hit if record else store.peek
        result = await self._call_store(
            operation,
            identifier,
            lambda: method(
                key,
                limit=self._config.requests,
                window_seconds=self._config.window_seconds,
                now=now,
            ),
        )
        if not result.ok or result.value is None:
            return self._fail_open(now)

        return self._to_decision(result.value, now)

    async def limit(self, identifier: str) -> RateLimitDecision:
        """Consume one unit of quota for ``identifier``.

        Never raises. Returns an allow decision with the full quota remaining
        when the store is missing, failing or too slow.
        """
        decision = await self._evaluate("limit", identifier, record=True)
        if not decision.success:
            logger.info(
                "rate_limit.rejected",
                extra={
                    "limiter": self._name,
                    "identifier": identifier,
                    "limit": decision.limit,
                    "retry_after_s": decision.retry_after,
                },
            )
        return decision

    async def check(self, identifier: str) -> RateLimitDecision:
        """Report the current window for ``identifier`` without consuming quota.

        ``success`` tells whether a request made now would be admitted.
        """
        return await self._evaluate("check", identifier, record=False)

    async def reset(self, identifier: str) -> None:
        """Clear the window for ``identifier``. Best effort, never raises."""
        if self._store is None:
            logger.warning(
                "rate_limit.reset_skipped",
                extra={"limiter": self._name, "identifier": identifier, "reason": "store_unconfigured"},
            )
            return

        store = self._store
        key = self.build_key(identifier)
        result = await self._call_store("reset", identifier, lambda: store.clear(key))
        if result.ok:
            logger.info(
                "rate_limit.reset",
                extra={"limiter": self._name, "identifier": identifier},
            )

    async def aclose(self) -> None:
        if self._store is not None:
            await self._store.aclose()
