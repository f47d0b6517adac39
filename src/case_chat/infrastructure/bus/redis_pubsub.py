"""Redis Pub/Sub subscriber: feeds broadcast envelopes from every instance to local sockets."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from case_chat.infrastructure.bus.serializer import BroadcastEnvelope, deserialize_envelope

logger = logging.getLogger(__name__)

OnEnvelopeCallback = Callable[[BroadcastEnvelope], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches envelopes in arrival order."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEnvelopeCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    envelope = deserialize_envelope(message["data"])
                except (ValueError, KeyError):
                    logger.warning("Dropping malformed broadcast envelope")
                    continue
                try:
                    await self._callback(envelope)
                except Exception:
                    logger.exception(
                        "Error delivering %s for conversation %s",
                        envelope.event_type, envelope.conversation_id,
                    )
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
