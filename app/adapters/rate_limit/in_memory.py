"""In-memory sliding-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  Production deployments use the Redis store instead.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable

from app.adapters.rate_limit.base import AbstractCounterStore, RateLimitScope, WindowState

# Checks between full sweeps of expired keys
SWEEP_INTERVAL = 1024


class InMemorySlidingWindowStore(AbstractCounterStore):
    """Counter store keeping a deque of event timestamps per key.

    Events older than the window are pruned from the checked key on every
    call. Every ``sweep_interval`` calls the whole table is swept so keys that
    never come back are dropped too, keeping memory bounded under key churn.
    """

    def __init__(
        self,
        *,
        sweep_interval: int = SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            sweep_interval: Number of checks between full expiry sweeps.
            clock: Time source function returning UNIX time in seconds.
        """
        if sweep_interval < 1:
            raise ValueError("sweep_interval must be >= 1")
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._lock = threading.RLock()
        self._events: dict[tuple[str, str], deque[int]] = {}
        self._windows: dict[tuple[str, str], int] = {}
        self._calls_since_sweep = 0

    def tracked_keys(self) -> int:
        """Number of keys currently holding window state."""

        with self._lock:
            return len(self._events)

    def _sweep_locked(self, now_ms: int) -> None:
        expired = [
            bucket
            for bucket, events in self._events.items()
            if not events or events[-1] <= now_ms - self._windows.get(bucket, 0)
        ]
        for bucket in expired:
            self._events.pop(bucket, None)
            self._windows.pop(bucket, None)

    async def increment_and_check(
        self,
        scope: RateLimitScope,
        key: str,
        *,
        limit: int,
        window_seconds: int,
    ) -> WindowState:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now_ms = int(self._clock() * 1000)
        window_ms = window_seconds * 1000
        bucket = (scope.value, key)

        with self._lock:
            self._calls_since_sweep += 1
            if self._calls_since_sweep >= self._sweep_interval:
                self._calls_since_sweep = 0
                self._sweep_locked(now_ms)

            events = self._events.get(bucket)
            if events is None:
                events = deque()
                self._events[bucket] = events
            self._windows[bucket] = window_ms

            while events and events[0] <= now_ms - window_ms:
                events.popleft()

            allowed = len(events) < limit
            if allowed:
                events.append(now_ms)

            reset_at_ms = events[0] + window_ms if events else now_ms + window_ms
            state = WindowState(
                allowed=allowed,
                limit=limit,
                count=len(events),
                reset_at_ms=reset_at_ms,
            )

            if not events:
                self._events.pop(bucket, None)
                self._windows.pop(bucket, None)

        return state

    async def ping(self) -> bool:
        return True

    def clear(self) -> None:
        """Drop all window state."""

        with self._lock:
            self._events.clear()
            self._windows.clear()
            self._calls_since_sweep = 0
