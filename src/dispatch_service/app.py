from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dispatch_service.api.middleware.correlation_id import CorrelationIdMiddleware
from dispatch_service.api.middleware.metrics import RequestTimingMiddleware
from dispatch_service.api.v1.routers import health, messages, scheduler
from dispatch_service.application.exceptions import (
    AppError,
    ConflictError,
    DeliveryError,
    NotFoundError,
    PersistenceError,
    RateLimitedError,
    ValidationError,
)
from dispatch_service.application.ports.cache import Cache
from dispatch_service.application.repositories.message import MessageStore
from dispatch_service.config import settings
from dispatch_service.infrastructure.cache.redis_cache import build_cache
from dispatch_service.infrastructure.db.repositories.message import SqlAlchemyMessageStore
from dispatch_service.infrastructure.db.session import AsyncSessionLocal
from dispatch_service.infrastructure.delivery.webhook_client import WebhookDeliveryClient
from dispatch_service.services.message_sender import MessageSender
from dispatch_service.services.scheduler import Scheduler

logger = logging.getLogger(__name__)


def build_sender(store: MessageStore, cache: Cache) -> tuple[MessageSender, WebhookDeliveryClient]:
    """Wire the sender from settings. Shared by the API and the standalone worker."""
    client = WebhookDeliveryClient(
        settings.WEBHOOK_URL,
        settings.AUTH_KEY,
        auth_header=settings.AUTH_HEADER,
        timeout_s=settings.WEBHOOK_TIMEOUT_S,
    )
    sender = MessageSender(
        store,
        cache,
        client,
        message_ttl=timedelta(seconds=settings.MESSAGE_CACHE_TTL_SECONDS),
        snapshot_ttl=timedelta(seconds=settings.SENT_MESSAGES_CACHE_TTL_SECONDS),
    )
    return sender, client


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    redis: aioredis.Redis | None = None
    if settings.REDIS_URL:
        redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info("Redis connection pool created")
    else:
        logger.warning("REDIS_URL not set, running without dedup cache")

    store = SqlAlchemyMessageStore(AsyncSessionLocal)
    cache = build_cache(redis)
    sender, client = build_sender(store, cache)

    app.state.redis = redis
    app.state.session_factory = AsyncSessionLocal
    app.state.store = store
    app.state.cache = cache
    app.state.sender = sender
    app.state.scheduler = Scheduler(
        sender,
        interval_s=settings.SCHEDULER_INTERVAL_SECONDS,
        batch_size=settings.SCHEDULER_BATCH_SIZE,
    )

    if settings.SCHEDULER_AUTOSTART:
        await app.state.scheduler.start()

    yield

    await app.state.scheduler.shutdown()
    await client.close()
    if redis is not None:
        await redis.aclose()
        logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Dispatch Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(scheduler.router)
    app.include_router(messages.router)

    return app


_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (ValidationError, 422),
    (RateLimitedError, 429),
    (DeliveryError, 502),
    (PersistenceError, 500),
)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(_req: Request, exc: AppError) -> JSONResponse:
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                break
        else:
            status_code = 500
        if status_code >= 500:
            logger.error("Request failed: %s", exc.detail)
        return JSONResponse(status_code=status_code, content={"detail": exc.detail})
