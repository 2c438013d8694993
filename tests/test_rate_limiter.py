"""Unit tests for the sliding-window rate limiter."""

from __future__ import annotations

import asyncio
import logging

import pytest

from portal_limiter.adapters.rate_limit.base import (
    AbstractWindowStore,
    RateLimitConfig,
    RateLimitDecision,
    WindowState,
)
from portal_limiter.core.errors import WindowStoreError


class FailingStore(AbstractWindowStore):
    """Store whose every call raises, like an unreachable Upstash endpoint."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ConnectionError("store unreachable")
        self.calls = 0

    async def hit(self, key, *, limit, window_seconds, now) -> WindowState:
        self.calls += 1
        raise self.exc

    async def peek(self, key, *, limit, window_seconds, now) -> WindowState:
        self.calls += 1
        raise self.exc

    async def clear(self, key) -> None:
        self.calls += 1
        raise self.exc


class SlowStore(FailingStore):
    async def hit(self, key, *, limit, window_seconds, now) -> WindowState:
        await asyncio.sleep(1)
        return WindowState(allowed=True, count=1, oldest=now)


class FlakyStore(FailingStore):
    """Fails on the first hit, then behaves like an empty window."""

    async def hit(self, key, *, limit, window_seconds, now) -> WindowState:
        self.calls += 1
        if self.calls == 1:
            raise WindowStoreError(code="store_error", message="transient")
        return WindowState(allowed=True, count=limit, oldest=now)


@pytest.mark.asyncio
async def test_example_scenario(make_limiter, clock) -> None:
    limiter = make_limiter(requests=3, window_seconds=10)

    results = [await limiter.limit("cust-1") for _ in range(3)]
    assert [r.success for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]
    assert all(r.retry_after is None for r in results)

    blocked = await limiter.limit("cust-1")
    assert blocked.success is False
    assert blocked.remaining == 0
    assert blocked.retry_after == 10

    clock.return_value = 1010.0
    fifth = await limiter.limit("cust-1")
    assert fifth.success is True
    assert fifth.remaining == 2


@pytest.mark.asyncio
async def test_remaining_strictly_decreases_to_zero(make_limiter) -> None:
    limiter = make_limiter(requests=5, window_seconds=60)

    remaining = [(await limiter.limit("k")).remaining for _ in range(5)]

    assert remaining == [4, 3, 2, 1, 0]


@pytest.mark.asyncio
async def test_excess_calls_rejected_with_retry_after(make_limiter, clock) -> None:
    limiter = make_limiter(requests=2, window_seconds=30)
    await limiter.limit("k")
    clock.return_value = 1005.0
    await limiter.limit("k")

    clock.return_value = 1012.0
    for _ in range(3):
        decision = await limiter.limit("k")
        assert decision.success is False
        assert decision.remaining == 0
        # The entry recorded at t=1000 leaves the window at t=1030
        assert decision.retry_after == 18
        assert decision.reset == 1030


@pytest.mark.parametrize("start", [1000.0, 1004.9, 1009.9, 1009.999])
@pytest.mark.asyncio
async def test_burst_half_a_window_later_is_rejected(make_limiter, clock, start) -> None:
    limiter = make_limiter(requests=4, window_seconds=10)

    clock.return_value = start
    first_burst = [await limiter.limit("k") for _ in range(4)]
    assert all(d.success for d in first_burst)

    clock.return_value = start + 5
    second_burst = [await limiter.limit("k") for _ in range(4)]
    assert not any(d.success for d in second_burst)


@pytest.mark.asyncio
async def test_window_slides_one_entry_at_a_time(make_limiter, clock) -> None:
    limiter = make_limiter(requests=2, window_seconds=10)

    clock.return_value = 1000.0
    await limiter.limit("k")
    clock.return_value = 1006.0
    await limiter.limit("k")

    clock.return_value = 1010.0
    assert (await limiter.limit("k")).success is True
    assert (await limiter.limit("k")).success is False

    clock.return_value = 1016.0
    assert (await limiter.limit("k")).success is True


@pytest.mark.asyncio
async def test_identifiers_do_not_share_counters(make_limiter) -> None:
    limiter = make_limiter(requests=1, window_seconds=60)

    assert (await limiter.limit("cust-1")).success is True
    assert (await limiter.limit("cust-1")).success is False
    assert (await limiter.limit("cust-2")).success is True


def test_build_key_uses_prefix_and_namespace(make_limiter) -> None:
    limiter = make_limiter(prefix="portal:ratelimit", namespace="customer")

    assert limiter.build_key("cust-1") == "portal:ratelimit:customer:cust-1"
    assert make_limiter(prefix="api:ratelimit").build_key("ip:1.2.3.4") == "api:ratelimit:ip:1.2.3.4"


@pytest.mark.asyncio
async def test_check_does_not_consume(make_limiter) -> None:
    limiter = make_limiter(requests=3, window_seconds=10)
    await limiter.limit("k")
    await limiter.limit("k")

    first = await limiter.check("k")
    second = await limiter.check("k")

    assert first == second
    assert first.success is True
    assert first.remaining == 1
    assert (await limiter.limit("k")).remaining == 0


@pytest.mark.asyncio
async def test_check_reports_exhausted_window(make_limiter) -> None:
    limiter = make_limiter(requests=1, window_seconds=10)
    await limiter.limit("k")

    status = await limiter.check("k")

    assert status.success is False
    assert status.remaining == 0
    assert status.retry_after == 10


@pytest.mark.asyncio
async def test_check_on_fresh_identifier(make_limiter) -> None:
    limiter = make_limiter(requests=3, window_seconds=10)

    status = await limiter.check("new")

    assert status == RateLimitDecision(success=True, limit=3, remaining=3, reset=1010)


@pytest.mark.asyncio
async def test_reset_restores_full_quota(make_limiter) -> None:
    limiter = make_limiter(requests=3, window_seconds=10)
    for _ in range(4):
        await limiter.limit("k")

    await limiter.reset("k")

    decision = await limiter.limit("k")
    assert decision.success is True
    assert decision.remaining == 2


@pytest.mark.asyncio
async def test_reset_only_touches_one_identifier(make_limiter) -> None:
    limiter = make_limiter(requests=2, window_seconds=10)
    await limiter.limit("a")
    await limiter.limit("b")

    await limiter.reset("a")

    assert (await limiter.check("a")).remaining == 2
    assert (await limiter.check("b")).remaining == 1


class TestFailOpen:
    """Store outages must never reject or raise."""

    @pytest.mark.parametrize("identifier", ["cust-1", "", "x" * 10_000, "ümlaut:🙂"])
    @pytest.mark.asyncio
    async def test_unreachable_store_allows(self, make_limiter, identifier) -> None:
        limiter = make_limiter(requests=2, window_seconds=10, window_store=FailingStore())

        for _ in range(5):
            decision = await limiter.limit(identifier)
            assert decision.success is True
            assert decision.remaining == 2
            assert decision.retry_after is None

    @pytest.mark.asyncio
    async def test_store_error_logged_with_identifier(self, make_limiter, caplog) -> None:
        limiter = make_limiter(window_store=FailingStore(), name="portal")

        with caplog.at_level(logging.WARNING):
            await limiter.limit("cust-9")

        records = [r for r in caplog.records if r.getMessage() == "rate_limit.store_error"]
        assert len(records) == 1
        assert records[0].identifier == "cust-9"
        assert records[0].error_type == "ConnectionError"
        assert records[0].limiter == "portal"

    @pytest.mark.asyncio
    async def test_slow_store_times_out_and_allows(self, make_limiter) -> None:
        limiter = make_limiter(requests=2, window_store=SlowStore(), timeout_seconds=0.01)

        decision = await limiter.limit("k")

        assert decision.success is True
        assert decision.remaining == 2

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, make_limiter) -> None:
        store = FlakyStore()
        limiter = make_limiter(requests=3, window_store=store)

        assert (await limiter.limit("k")).remaining == 3
        assert (await limiter.limit("k")).remaining == 0
        assert store.calls == 2

    @pytest.mark.asyncio
    async def test_check_and_reset_never_raise(self, make_limiter) -> None:
        limiter = make_limiter(requests=2, window_store=FailingStore())

        assert (await limiter.check("k")).success is True
        assert await limiter.reset("k") is None

    @pytest.mark.asyncio
    async def test_unconfigured_store_warns_once(self, make_limiter, caplog) -> None:
        with caplog.at_level(logging.DEBUG):
            limiter = make_limiter(requests=2, window_store=None)
            decisions = [await limiter.limit("k") for _ in range(5)]
            await limiter.reset("k")

        assert limiter.store_available is False
        assert all(d.success and d.remaining == 2 for d in decisions)
        unconfigured = [r for r in caplog.records if r.getMessage() == "rate_limit.store_unconfigured"]
        assert len(unconfigured) == 1
        bypass_warnings = [
            r for r in caplog.records
            if r.getMessage() == "rate_limit.bypassed" and r.levelno >= logging.WARNING
        ]
        assert bypass_warnings == []


class TestValueTypes:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"requests": 0, "window_seconds": 60},
            {"requests": 1, "window_seconds": 0},
            {"requests": -5, "window_seconds": 10},
        ],
    )
    def test_invalid_config(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RateLimitConfig(**kwargs)

    def test_rejected_decision_requires_retry_after(self) -> None:
        with pytest.raises(ValueError):
            RateLimitDecision(success=False, limit=1, remaining=0, reset=10)

    def test_admitted_decision_forbids_retry_after(self) -> None:
        with pytest.raises(ValueError):
            RateLimitDecision(success=True, limit=1, remaining=0, reset=10, retry_after=3)

    def test_invalid_timeout(self, make_limiter) -> None:
        with pytest.raises(ValueError):
            make_limiter(timeout_seconds=0)
