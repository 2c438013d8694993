"""Rate limiter interfaces and value types.

Routes depend on the limiter, and the limiter depends on the window store
abstraction, so the shared counter service can be swapped (Upstash REST,
in-memory for tests) without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RateLimitConfig:
    """Quota applied by one limiter instance.

    Attributes:
        requests: Maximum admitted requests inside any trailing window.
        window_seconds: Length of the sliding window in seconds.
    """

    requests: int
    window_seconds: int

    def __post_init__(self) -> None:
        if self.requests < 1:
            raise ValueError("requests must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a limit/check call.

    Attributes:
        success: Whether the request may proceed.
        limit: Configured requests per window.
        remaining: Requests left in the trailing window (0 when blocked).
        reset: UNIX epoch seconds when the oldest counted request leaves the window.
        retry_after: Seconds to wait before retrying; set only when blocked.
    """

    success: bool
    limit: int
    remaining: int
    reset: int
    retry_after: int | None = None

    def __post_init__(self) -> None:
        if self.remaining < 0:
            raise ValueError("remaining must be >= 0")
        if self.success and self.retry_after is not None:
            raise ValueError("retry_after must be None for admitted requests")
        if not self.success and self.retry_after is None:
            raise ValueError("retry_after is required for rejected requests")


@dataclass(frozen=True)
class WindowState:
    """Store-level view of one key's sliding window after an operation.

    Attributes:
        allowed: Whether the hit was recorded (or, for a peek, would be).
        count: Entries inside the trailing window after the operation.
        oldest: UNIX timestamp of the oldest entry, None when the window is empty.
    """

    allowed: bool
    count: int
    oldest: float | None


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Either the value of a store call or the exception it produced."""

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AbstractWindowStore(ABC):
    """Interface for the shared sliding-window counter service.

    Implementations must make ``hit`` atomic per key: two concurrent hits on
    the same key may never both take the last slot.
    """

    @abstractmethod
    async def hit(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> WindowState:
        """Evict expired entries and record ``now`` if fewer than ``limit`` remain.

        Entries with a timestamp ``<= now - window_seconds`` are expired.

        Args:
            key: Fully prefixed store key.
            limit: Maximum entries allowed in the window.
            window_seconds: Window length.
            now: Current UNIX time in seconds.

        Returns:
            WindowState after the operation.
        """
        raise NotImplementedError

    @abstractmethod
    async def peek(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> WindowState:
        """Inspect a window without recording anything."""
        raise NotImplementedError

    @abstractmethod
    async def clear(self, key: str) -> None:
        """Drop every entry recorded for ``key``."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources held by the store."""
        return None
