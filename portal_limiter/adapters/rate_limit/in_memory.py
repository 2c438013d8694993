"""In-memory sliding-window store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Keeps an exact timestamp log per key, so the quota holds over every trailing
  window, not just inside fixed buckets.
- Keys expire one window after their newest entry, like a Redis TTL; expired
  keys are swept at most once per ``sweep_interval_seconds``.
"""

from __future__ import annotations

import threading
from collections import deque

from portal_limiter.adapters.rate_limit.base import AbstractWindowStore, WindowState


class InMemorySlidingWindowStore(AbstractWindowStore):
    """Window store keeping request timestamps in process memory.

    Suitable for local development and tests. Production deployments should use
    a shared store so that every worker sees the same counters.
    """

    def __init__(self, *, sweep_interval_seconds: float = 1.0) -> None:
        if sweep_interval_seconds < 0:
            raise ValueError("sweep_interval_seconds must be >= 0")
        self._lock = threading.RLock()
        self._log_by_key: dict[str, deque[float]] = {}
        self._expires_at: dict[str, float] = {}
        self._sweep_interval_seconds = sweep_interval_seconds
        self._next_sweep_at = float("-inf")

    def _drop(self, key: str) -> None:
        self._log_by_key.pop(key, None)
        self._expires_at.pop(key, None)

    def _sweep(self, now: float) -> None:
        """Forget every key whose newest entry has left its window."""
        if now < self._next_sweep_at:
            return
        expired = [key for key, expires_at in self._expires_at.items() if expires_at <= now]
        for key in expired:
            self._drop(key)
        self._next_sweep_at = now + self._sweep_interval_seconds

    def _prune(self, key: str, cutoff: float) -> deque[float]:
        """Drop timestamps at or before ``cutoff`` and return the live log."""
        log = self._log_by_key.get(key)
        if log is None:
            return deque()
        while log and log[0] <= cutoff:
            log.popleft()
        if not log:
            self._drop(key)
        return log

    def _state(self, log: deque[float], *, allowed: bool) -> WindowState:
        return WindowState(
            allowed=allowed,
            count=len(log),
            oldest=log[0] if log else None,
        )

    async def hit(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> WindowState:
        with self._lock:
            self._sweep(now)
            log = self._prune(key, now - window_seconds)
            if len(log) >= limit:
                return self._state(log, allowed=False)
            log.append(now)
            self._log_by_key[key] = log
            self._expires_at[key] = now + window_seconds
            return self._state(log, allowed=True)

    async def peek(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> WindowState:
        with self._lock:
            log = self._prune(key, now - window_seconds)
            return self._state(log, allowed=len(log) < limit)

    async def clear(self, key: str) -> None:
        with self._lock:
            self._drop(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._log_by_key)
