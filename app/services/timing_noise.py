"""Randomized response delay for paths that could leak state through latency.

Applied on honeypot-absorb, duplicate-rejection and internal-error paths
only. Plain successes and plain validation failures stay undelayed.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable


class TimingNoise:
    def __init__(
        self,
        min_ms: int = 50,
        max_ms: int = 150,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_ms < 0 or max_ms < min_ms:
            raise ValueError("require 0 <= min_ms <= max_ms")
        self._min_ms = min_ms
        self._max_ms = max_ms
        self._rng = rng or random.SystemRandom()
        self._sleep = sleep

    def next_delay(self) -> float:
        """Return the next delay in seconds, uniform in [min_ms, max_ms]."""

        return self._rng.uniform(self._min_ms, self._max_ms) / 1000

    async def apply(self) -> None:
        await self._sleep(self.next_delay())
