"""Redis-backed blocked-request log.

Layout:
- ``{prefix}:blocked:addr:{address}``: list of JSON records, newest first,
  trimmed to the newest ``MAX_RECORDS_PER_ADDRESS`` with its TTL refreshed to
  24 hours on every append.
- ``{prefix}:blocked:total``: global counter, never expires.
"""

from __future__ import annotations

import json
import time
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.adapters.blocked_log.base import (
    MAX_RECORDS_PER_ADDRESS,
    RETENTION_SECONDS,
    AbstractBlockedRequestLog,
    BlockedLogUnavailableError,
    BlockedRequest,
)


class RedisBlockedRequestLog(AbstractBlockedRequestLog):
    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "waitlist",
        retention_seconds: int = RETENTION_SECONDS,
        max_records: int = MAX_RECORDS_PER_ADDRESS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._retention_seconds = retention_seconds
        self._max_records = max_records
        self._clock = clock

    def _address_key(self, address: str) -> str:
        return f"{self._key_prefix}:blocked:addr:{address}"

    @property
    def _total_key(self) -> str:
        return f"{self._key_prefix}:blocked:total"

    async def record(self, address: str, reason: str) -> None:
        entry = json.dumps({"reason": reason, "timestamp": int(self._clock() * 1000)})
        key = self._address_key(address)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.lpush(key, entry)
                pipe.ltrim(key, 0, self._max_records - 1)
                pipe.expire(key, self._retention_seconds)
                pipe.incr(self._total_key)
                await pipe.execute()
        except (RedisError, OSError) as exc:
            raise BlockedLogUnavailableError(str(exc)) from exc

    async def list_for(self, address: str) -> list[BlockedRequest]:
        try:
            raw_entries = await self._client.lrange(self._address_key(address), 0, -1)
        except (RedisError, OSError) as exc:
            raise BlockedLogUnavailableError(str(exc)) from exc

        records: list[BlockedRequest] = []
        for raw in raw_entries:
            try:
                data = json.loads(raw)
                records.append(
                    BlockedRequest(reason=str(data["reason"]), timestamp_ms=int(data["timestamp"]))
                )
            except (ValueError, KeyError, TypeError):
                continue
        return records

    async def total(self) -> int:
        try:
            value = await self._client.get(self._total_key)
        except (RedisError, OSError) as exc:
            raise BlockedLogUnavailableError(str(exc)) from exc
        return int(value) if value is not None else 0
