"""Service construction and lifecycle.

``build_services`` turns a ``Settings`` object into every client handle the
application needs. The FastAPI lifespan owns the resulting container: it
calls ``startup`` before serving and ``shutdown`` after the last request,
and routes reach it through ``request.app.state.services``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from redis.asyncio import Redis

from app.adapters.blocked_log.base import AbstractBlockedRequestLog
from app.adapters.blocked_log.in_memory import InMemoryBlockedRequestLog
from app.adapters.blocked_log.redis_log import RedisBlockedRequestLog
from app.adapters.notifier.base import AbstractNotifier
from app.adapters.notifier.factory import create_notifier
from app.adapters.rate_limit.base import AbstractCounterStore
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from app.adapters.rate_limit.redis_store import RedisSlidingWindowStore
from app.adapters.store.base import AbstractWaitlistStore
from app.adapters.store.sqlalchemy_store import SqlAlchemyWaitlistStore, create_store_engine
from app.core.config import Settings
from app.core.origin_policy import OriginPolicy
from app.services.admission_service import AdmissionPipeline
from app.services.duplicate_checker import DuplicateChecker
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.rate_limit_service import RateLimiter
from app.services.timing_noise import TimingNoise

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    counter_store: AbstractCounterStore
    blocked_log: AbstractBlockedRequestLog
    store: AbstractWaitlistStore
    notifier: AbstractNotifier
    rate_limiter: RateLimiter
    dispatcher: NotificationDispatcher
    origin_policy: OriginPolicy
    pipeline: AdmissionPipeline
    redis_client: Redis | None = None
    _started: bool = field(default=False, repr=False)

    async def startup(self) -> None:
        if self._started:
            return
        await self.store.prepare()
        self.dispatcher.start()
        self._started = True
        logger.info(
            "services.started",
            extra={
                "counter_store": type(self.counter_store).__name__,
                "store": type(self.store).__name__,
                "notifier": type(self.notifier).__name__,
                "rate_limit_fail_closed": self.rate_limiter.fail_closed,
            },
        )

    async def shutdown(self) -> None:
        if not self._started:
            return
        await self.dispatcher.stop()
        await self.notifier.close()
        await self.counter_store.close()
        await self.blocked_log.close()
        await self.store.close()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        self._started = False
        logger.info(
            "services.stopped",
            extra={
                "notifications_sent": self.dispatcher.sent,
                "notifications_failed": self.dispatcher.failed,
                "notifications_dropped": self.dispatcher.dropped,
            },
        )


def _create_redis_client(settings: Settings) -> Redis | None:
    if not settings.redis.url:
        logger.warning(
            "services.redis_not_configured",
            extra={"fallback": "in_memory", "hint": "Set REDIS_URL when running more than one process"},
        )
        return None
    return Redis.from_url(
        settings.redis.url,
        decode_responses=True,
        socket_timeout=settings.redis.socket_timeout_seconds,
        socket_connect_timeout=settings.redis.socket_timeout_seconds,
    )


def build_services(settings: Settings, **overrides: Any) -> ServiceContainer:
    """Build the service graph for ``settings``.

    Keyword overrides replace individual components (``counter_store``,
    ``blocked_log``, ``store``, ``notifier``, ``timing_noise``) and are used
    by tests to inject fakes.
    """

    redis_client = None
    counter_store = overrides.get("counter_store")
    blocked_log = overrides.get("blocked_log")
    if counter_store is None or blocked_log is None:
        redis_client = _create_redis_client(settings)

    if counter_store is None:
        counter_store = (
            RedisSlidingWindowStore(redis_client, key_prefix=settings.redis.key_prefix)
            if redis_client is not None
            else InMemorySlidingWindowStore()
        )
    if blocked_log is None:
        blocked_log = (
            RedisBlockedRequestLog(redis_client, key_prefix=settings.redis.key_prefix)
            if redis_client is not None
            else InMemoryBlockedRequestLog()
        )

    store = overrides.get("store") or SqlAlchemyWaitlistStore(create_store_engine(settings.database))
    notifier = overrides.get("notifier") or create_notifier(settings.notifier)
    timing_noise = overrides.get("timing_noise") or TimingNoise(
        settings.app.timing_noise_min_ms,
        settings.app.timing_noise_max_ms,
    )

    rate_limiter = RateLimiter.from_settings(counter_store, settings)
    dispatcher = NotificationDispatcher(
        notifier,
        queue_size=settings.notifier.queue_size,
        workers=settings.notifier.workers,
    )
    origin_policy = OriginPolicy.from_settings(settings)
    pipeline = AdmissionPipeline(
        rate_limiter=rate_limiter,
        duplicate_checker=DuplicateChecker(store, timeout_seconds=settings.app.store_timeout_seconds),
        store=store,
        blocked_log=blocked_log,
        dispatcher=dispatcher,
        origin_policy=origin_policy,
        timing_noise=timing_noise,
        max_body_bytes=settings.app.max_body_bytes,
        store_timeout_seconds=settings.app.store_timeout_seconds,
        report_position=settings.app.report_position,
    )

    return ServiceContainer(
        settings=settings,
        counter_store=counter_store,
        blocked_log=blocked_log,
        store=store,
        notifier=notifier,
        rate_limiter=rate_limiter,
        dispatcher=dispatcher,
        origin_policy=origin_policy,
        pipeline=pipeline,
        redis_client=redis_client,
    )
