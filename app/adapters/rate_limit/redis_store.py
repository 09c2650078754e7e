"""Redis-backed sliding-window counter store.

Each ``(scope, key)`` maps to a sorted set of event timestamps (milliseconds).
A Lua script prunes expired events, counts, conditionally adds the new event
and refreshes the key TTL in one server-side step, which makes the check
atomic across every process sharing the Redis instance.
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.adapters.rate_limit.base import (
    AbstractCounterStore,
    CounterStoreUnavailableError,
    RateLimitScope,
    WindowState,
)

SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local member = ARGV[4]

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
local allowed = 0
if count < limit then
    redis.call('ZADD', key, now, member)
    count = count + 1
    allowed = 1
end
redis.call('PEXPIRE', key, window)

local reset = now + window
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
if oldest[2] then
    reset = tonumber(oldest[2]) + window
end
return {allowed, count, reset}
"""


class RedisSlidingWindowStore(AbstractCounterStore):
    """Counter store shared by every instance behind the load balancer."""

    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "waitlist",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._clock = clock
        self._script = client.register_script(SLIDING_WINDOW_SCRIPT)

    def _key(self, scope: RateLimitScope, key: str) -> str:
        return f"{self._key_prefix}:ratelimit:{scope.value}:{key}"

    async def increment_and_check(
        self,
        scope: RateLimitScope,
        key: str,
        *,
        limit: int,
        window_seconds: int,
    ) -> WindowState:
        if not key:
            raise ValueError("key must be a non-empty string")

        now_ms = int(self._clock() * 1000)
        window_ms = window_seconds * 1000
        # Unique member so two events in the same millisecond both count
        member = f"{now_ms}:{uuid.uuid4().hex}"

        try:
            allowed, count, reset_at = await self._script(
                keys=[self._key(scope, key)],
                args=[now_ms, window_ms, limit, member],
            )
        except (RedisError, OSError) as exc:
            raise CounterStoreUnavailableError(str(exc)) from exc

        return WindowState(
            allowed=bool(int(allowed)),
            limit=limit,
            count=int(count),
            reset_at_ms=int(reset_at),
        )

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            return False
