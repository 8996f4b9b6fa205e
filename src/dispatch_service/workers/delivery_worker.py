"""Delivery worker: runs the scheduler without the HTTP control surface."""
from __future__ import annotations

import asyncio
import logging
import signal

import redis.asyncio as aioredis

from dispatch_service.app import build_sender
from dispatch_service.config import settings
from dispatch_service.infrastructure.cache.redis_cache import build_cache
from dispatch_service.infrastructure.db.repositories.message import SqlAlchemyMessageStore
from dispatch_service.infrastructure.db.session import AsyncSessionLocal
from dispatch_service.logging_config import configure_logging
from dispatch_service.services.scheduler import Scheduler

logger = logging.getLogger(__name__)


async def run_delivery_worker(stop: asyncio.Event) -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True) if settings.REDIS_URL else None
    sender, client = build_sender(SqlAlchemyMessageStore(AsyncSessionLocal), build_cache(redis))
    scheduler = Scheduler(
        sender,
        interval_s=settings.SCHEDULER_INTERVAL_SECONDS,
        batch_size=settings.SCHEDULER_BATCH_SIZE,
    )

    logger.info(
        "Delivery worker started (interval=%.1fs, batch=%d, cache=%s)",
        settings.SCHEDULER_INTERVAL_SECONDS,
        settings.SCHEDULER_BATCH_SIZE,
        "redis" if redis is not None else "disabled",
    )

    try:
        await scheduler.start()
        await stop.wait()
    finally:
        await scheduler.shutdown()
        await client.close()
        if redis is not None:
            await redis.aclose()
        logger.info("Delivery worker stopped")


async def _main() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    await run_delivery_worker(stop)


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(_main())


if __name__ == "__main__":
    main()
