from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from case_chat.api.deps import get_verifier
from case_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from case_chat.api.middleware.metrics import RequestTimingMiddleware
from case_chat.api.v1.routers import (
    conversations,
    health,
    messages,
    ws,
)
from case_chat.application.exceptions import AppError
from case_chat.config import settings
from case_chat.infrastructure.bus.broadcast import LocalBroadcastChannel, RedisBroadcastChannel
from case_chat.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber
from case_chat.infrastructure.cases.redis_directory import RedisCaseDirectory
from case_chat.infrastructure.db.uow import open_uow
from case_chat.infrastructure.ws.manager import ConnectionManager
from case_chat.services.chat_facade import ChatFacade
from case_chat.services.presence_gateway import PresenceGateway

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    manager = ConnectionManager()
    subscriber: RedisPubSubSubscriber | None = None
    if settings.BROADCAST_BACKEND == "redis":
        broadcast = RedisBroadcastChannel(
            manager, app.state.redis, settings.REDIS_PUBSUB_CHANNEL,
        )
        subscriber = RedisPubSubSubscriber(
            app.state.redis,
            settings.REDIS_PUBSUB_CHANNEL,
            broadcast.dispatch,
        )
        await subscriber.start()
    else:
        broadcast = LocalBroadcastChannel(manager)
    logger.info("Broadcast backend: %s", settings.BROADCAST_BACKEND)

    facade = ChatFacade(
        broadcast,
        RedisCaseDirectory(app.state.redis, settings.CASE_OWNER_KEY_PREFIX),
        pending_observer_roles=settings.PENDING_OBSERVER_ROLES,
    )
    app.state.facade = facade
    gateway = PresenceGateway(
        get_verifier(), manager, broadcast, facade, uow_factory=open_uow,
    )
    broadcast.add_delivery_hook(gateway.on_room_event)
    app.state.gateway = gateway

    yield

    if subscriber is not None:
        await subscriber.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Case Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(conversations.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(_req: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.code},
        )
