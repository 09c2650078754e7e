"""Counter store interfaces for sliding-window rate limiting.

The rate limit service depends on this abstraction (not the concrete
implementation) so the backing store can be Redis in production and a
process-local structure in development and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class RateLimitScope(str, Enum):
    """Keyspaces evaluated by the admission pipeline."""

    GLOBAL = "global"
    ADDRESS = "address"
    IDENTITY = "identity"
    STRICT = "strict"


@dataclass(frozen=True)
class WindowState:
    """Result of one atomic increment-and-check.

    Attributes:
        allowed: Whether the event was admitted (and recorded).
        limit: Max events per window.
        count: Events in the window after this call.
        reset_at_ms: UNIX epoch milliseconds when the next slot frees up.
    """

    allowed: bool
    limit: int
    count: int
    reset_at_ms: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class CounterStoreUnavailableError(Exception):
    """Raised when the counter store cannot be reached or errors."""


class AbstractCounterStore(ABC):
    """Interface for shared, atomically mutable counter stores."""

    @abstractmethod
    async def increment_and_check(
        self,
        scope: RateLimitScope,
        key: str,
        *,
        limit: int,
        window_seconds: int,
    ) -> WindowState:
        """Admit and record one event for ``(scope, key)`` if under the limit.

        Evaluation and increment happen as a single atomic step, so two
        concurrent callers can never both take the last remaining slot.

        Raises:
            CounterStoreUnavailableError: If the backing store fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store is reachable."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release any connections held by the store."""
        return None
