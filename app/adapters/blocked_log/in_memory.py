"""Process-local blocked-request log for development and tests."""

from __future__ import annotations

import threading
import time
from typing import Callable

from app.adapters.blocked_log.base import (
    MAX_RECORDS_PER_ADDRESS,
    RETENTION_SECONDS,
    AbstractBlockedRequestLog,
    BlockedRequest,
)

# Appends between full sweeps of expired addresses
SWEEP_INTERVAL = 1024


class InMemoryBlockedRequestLog(AbstractBlockedRequestLog):
    def __init__(
        self,
        *,
        retention_seconds: int = RETENTION_SECONDS,
        max_records: int = MAX_RECORDS_PER_ADDRESS,
        sweep_interval: int = SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._retention_ms = retention_seconds * 1000
        self._max_records = max_records
        self._sweep_interval = max(1, sweep_interval)
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, list[BlockedRequest]] = {}
        self._total = 0
        self._appends_since_sweep = 0

    def tracked_addresses(self) -> int:
        with self._lock:
            return len(self._records)

    def _prune_locked(self, address: str, now_ms: int) -> list[BlockedRequest]:
        records = [
            r for r in self._records.get(address, []) if r.timestamp_ms > now_ms - self._retention_ms
        ]
        if records:
            self._records[address] = records
        else:
            self._records.pop(address, None)
        return records

    def _sweep_locked(self, now_ms: int) -> None:
        # Records are newest first, so an address is stale once its head is.
        cutoff = now_ms - self._retention_ms
        stale = [
            address
            for address, records in self._records.items()
            if not records or records[0].timestamp_ms <= cutoff
        ]
        for address in stale:
            del self._records[address]

    async def record(self, address: str, reason: str) -> None:
        now_ms = int(self._clock() * 1000)
        with self._lock:
            self._appends_since_sweep += 1
            if self._appends_since_sweep >= self._sweep_interval:
                self._appends_since_sweep = 0
                self._sweep_locked(now_ms)

            records = self._prune_locked(address, now_ms)
            records.insert(0, BlockedRequest(reason=reason, timestamp_ms=now_ms))
            del records[self._max_records :]
            self._records[address] = records
            self._total += 1

    async def list_for(self, address: str) -> list[BlockedRequest]:
        now_ms = int(self._clock() * 1000)
        with self._lock:
            return list(self._prune_locked(address, now_ms))

    async def total(self) -> int:
        with self._lock:
            return self._total
