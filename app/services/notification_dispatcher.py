"""Background hand-off for confirmation notifications.

The request path only enqueues; worker tasks owned by the application
lifespan perform delivery. Failures are logged and counted, never propagated
back to the request that produced them. ``stop`` drains pending work (bounded
by a timeout) before cancelling the workers.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.notifier.base import AbstractNotifier, NotificationRequest

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        notifier: AbstractNotifier,
        *,
        queue_size: int = 1000,
        workers: int = 2,
        drain_timeout_seconds: float = 10.0,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._notifier = notifier
        self._queue: asyncio.Queue[NotificationRequest] = asyncio.Queue(maxsize=queue_size)
        self._worker_count = workers
        self._drain_timeout = drain_timeout_seconds
        self._tasks: list[asyncio.Task[None]] = []
        self.sent = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Spawn worker tasks on the running event loop."""

        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"notification-worker-{i}")
            for i in range(self._worker_count)
        ]

    def enqueue(self, request: NotificationRequest) -> bool:
        """Queue ``request`` without waiting. Returns False if skipped or dropped."""

        if not self._notifier.configured:
            return False
        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("notifier.queue_full", extra={"queue_size": self._queue.maxsize})
            return False
        return True

    async def _deliver(self, request: NotificationRequest) -> None:
        try:
            result = await self._notifier.send(request)
        except Exception as exc:  # noqa: BLE001 - a bad send must not kill the worker
            self.failed += 1
            logger.error(
                "notifier.send_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return

        if result.success:
            self.sent += 1
            logger.info("notifier.sent", extra={"message_id": result.message_id})
        else:
            self.failed += 1
            logger.warning("notifier.send_failed", extra={"error_msg": result.error})

    async def _worker(self, worker_id: int) -> None:
        while True:
            request = await self._queue.get()
            try:
                await self._deliver(request)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued notification has been processed."""

        await self._queue.join()

    async def stop(self) -> None:
        """Drain pending notifications (bounded) and stop the workers."""

        if not self._tasks:
            return
        try:
            await asyncio.wait_for(self.drain(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("notifier.drain_timeout", extra={"pending": self.pending})

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
