"""Multi-scope sliding-window rate limiting.

Scopes, in the order the admission pipeline evaluates them:
1. Global: one shared key bounding aggregate throughput (caps downstream cost).
2. Address: keyed by client address (blunts scripted floods from one origin).
3. Identity: keyed by a digest of the submitted identity (blunts enumeration).

A fourth, much tighter ``strict`` scope is an escalation lever for callers
who want to throttle a specific address harder. The pipeline never invokes
it on its own.

Failure policy: when the counter store is unreachable or slow the limiter
fails open outside production and fails closed (short retry-after) in
production.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractCounterStore,
    CounterStoreUnavailableError,
    RateLimitScope,
)
from app.core.config import Settings
from app.core.logging import mask_address
from app.utils.identity_hasher import hash_identity

logger = logging.getLogger(__name__)

GLOBAL_KEY = "global"


@dataclass(frozen=True)
class ScopeLimit:
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of checking one scope.

    Attributes:
        allowed: Whether the request may proceed.
        scope: Scope that produced this decision.
        limit: Max events per window (0 when failing closed).
        remaining: Remaining events in the window.
        reset_at_ms: UNIX epoch milliseconds when a slot frees up.
        retry_after_seconds: Suggested wait when blocked, else None.
        degraded: True when the decision came from the failure policy.
    """

    allowed: bool
    scope: RateLimitScope
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int | None
    degraded: bool = False


class RateLimiter:
    """Evaluates scopes against a shared counter store."""

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        limits: dict[RateLimitScope, ScopeLimit],
        fail_closed: bool,
        fail_closed_retry_after_seconds: int = 60,
        timeout_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        missing = set(RateLimitScope) - set(limits)
        if missing:
            raise ValueError(f"missing limits for scopes: {sorted(s.value for s in missing)}")
        self._store = store
        self._limits = dict(limits)
        self._fail_closed = fail_closed
        self._fail_closed_retry_after = fail_closed_retry_after_seconds
        self._timeout = timeout_seconds
        self._clock = clock

    @classmethod
    def from_settings(cls, store: AbstractCounterStore, settings: Settings) -> "RateLimiter":
        cfg = settings.rate_limit
        identity = (
            ScopeLimit(cfg.strict_limit, cfg.strict_window_seconds)
            if cfg.strict_mode
            else ScopeLimit(cfg.identity_limit, cfg.identity_window_seconds)
        )
        return cls(
            store,
            limits={
                RateLimitScope.GLOBAL: ScopeLimit(cfg.global_limit, cfg.global_window_seconds),
                RateLimitScope.ADDRESS: ScopeLimit(cfg.address_limit, cfg.address_window_seconds),
                RateLimitScope.IDENTITY: identity,
                RateLimitScope.STRICT: ScopeLimit(cfg.strict_limit, cfg.strict_window_seconds),
            },
            fail_closed=settings.rate_limit_fails_closed,
            fail_closed_retry_after_seconds=cfg.fail_closed_retry_after_seconds,
            timeout_seconds=cfg.timeout_seconds,
        )

    @property
    def fail_closed(self) -> bool:
        return self._fail_closed

    def limit_for(self, scope: RateLimitScope) -> ScopeLimit:
        return self._limits[scope]

    def _retry_after(self, reset_at_ms: int, now_ms: int) -> int:
        return max(1, math.ceil((reset_at_ms - now_ms) / 1000))

    def _degraded_decision(self, scope: RateLimitScope, now_ms: int) -> RateLimitDecision:
        if self._fail_closed:
            return RateLimitDecision(
                allowed=False,
                scope=scope,
                limit=0,
                remaining=0,
                reset_at_ms=now_ms + self._fail_closed_retry_after * 1000,
                retry_after_seconds=self._fail_closed_retry_after,
                degraded=True,
            )
        scope_limit = self._limits[scope]
        return RateLimitDecision(
            allowed=True,
            scope=scope,
            limit=scope_limit.limit,
            remaining=scope_limit.limit,
            reset_at_ms=now_ms + scope_limit.window_seconds * 1000,
            retry_after_seconds=None,
            degraded=True,
        )

    async def check(self, scope: RateLimitScope, key: str) -> RateLimitDecision:
        """Check and, if admitted, record one event for ``(scope, key)``."""

        scope_limit = self._limits[scope]
        try:
            state = await asyncio.wait_for(
                self._store.increment_and_check(
                    scope,
                    key,
                    limit=scope_limit.limit,
                    window_seconds=scope_limit.window_seconds,
                ),
                timeout=self._timeout,
            )
        except (CounterStoreUnavailableError, asyncio.TimeoutError) as exc:
            logger.error(
                "rate_limit.store_unavailable",
                extra={
                    "scope": scope.value,
                    "error_type": type(exc).__name__,
                    "fail_closed": self._fail_closed,
                },
            )
            return self._degraded_decision(scope, int(self._clock() * 1000))

        now_ms = int(self._clock() * 1000)
        if state.allowed:
            return RateLimitDecision(
                allowed=True,
                scope=scope,
                limit=state.limit,
                remaining=state.remaining,
                reset_at_ms=state.reset_at_ms,
                retry_after_seconds=None,
            )

        retry_after = self._retry_after(state.reset_at_ms, now_ms)
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "scope": scope.value,
                "limit": state.limit,
                "window_s": scope_limit.window_seconds,
                "retry_after_s": retry_after,
            },
        )
        return RateLimitDecision(
            allowed=False,
            scope=scope,
            limit=state.limit,
            remaining=0,
            reset_at_ms=state.reset_at_ms,
            retry_after_seconds=retry_after,
        )

    async def check_identity(self, identity: str) -> RateLimitDecision:
        """Check the per-identity scope for a normalized identity."""

        return await self.check(RateLimitScope.IDENTITY, hash_identity(identity))

    async def check_admission(self, address: str, identity: str | None = None) -> RateLimitDecision:
        """Evaluate global, address and (if known) identity scopes in order.

        Returns the first failing decision, or the last passing one.
        """

        decision = await self.check(RateLimitScope.GLOBAL, GLOBAL_KEY)
        if not decision.allowed:
            return decision

        decision = await self.check(RateLimitScope.ADDRESS, address)
        if not decision.allowed:
            logger.info("rate_limit.address_blocked", extra={"client_network": mask_address(address)})
            return decision

        if identity:
            decision = await self.check_identity(identity)
        return decision

    async def apply_strict_limit(self, address: str) -> RateLimitDecision:
        """Consume from the strict per-address limiter (control-plane action)."""

        decision = await self.check(RateLimitScope.STRICT, address)
        logger.info(
            "rate_limit.strict_applied",
            extra={
                "client_network": mask_address(address),
                "allowed": decision.allowed,
                "remaining": decision.remaining,
            },
        )
        return decision
