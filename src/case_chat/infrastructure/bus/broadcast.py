"""Broadcast channel implementations.

``publish`` is called only after the corresponding write has committed.
Delivery is at-most-once per connected subscriber; nothing is replayed.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import redis.asyncio as aioredis

from case_chat.infrastructure.bus.serializer import (
    BroadcastEnvelope,
    serialize_envelope,
    to_jsonable,
)
from case_chat.infrastructure.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)

# (conversation_id, event_type, data); runs before the room sees the event.
DeliveryHook = Callable[[str, str, dict[str, Any]], Awaitable[None]]


class LocalBroadcastChannel:
    """Single-instance channel: delivers straight to this process's sockets."""

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager
        self._hooks: list[DeliveryHook] = []

    def add_delivery_hook(self, hook: DeliveryHook) -> None:
        self._hooks.append(hook)

    async def publish(
        self,
        conversation_id: str,
        event_type: str,
        payload: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        await self._deliver(
            conversation_id,
            event_type,
            to_jsonable(payload),
            exclude_connection=exclude_connection,
        )

    def subscribe(self, connection_id: str, conversation_id: str) -> None:
        self._manager.subscribe(connection_id, conversation_id)

    def unsubscribe(self, connection_id: str, conversation_id: str) -> None:
        self._manager.unsubscribe(connection_id, conversation_id)

    def drop(self, connection_id: str) -> None:
        self._manager.drop(connection_id)

    async def _deliver(
        self,
        conversation_id: str,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        for hook in self._hooks:
            try:
                await hook(conversation_id, event_type, data)
            except Exception:
                logger.exception(
                    "Delivery hook failed for %s on %s", event_type, conversation_id,
                )
        delivered = await self._manager.deliver(
            conversation_id,
            event_type,
            data,
            exclude_connection=exclude_connection,
        )
        logger.debug(
            "Delivered %s for %s to %d connection(s)",
            event_type, conversation_id, delivered,
        )


class RedisBroadcastChannel(LocalBroadcastChannel):
    """Fans out through Redis Pub/Sub so every instance reaches its own sockets.

    Room membership stays local; the instance-side ``RedisPubSubSubscriber``
    hands each envelope to :meth:`dispatch`.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        redis: aioredis.Redis,
        channel: str,
    ) -> None:
        super().__init__(manager)
        self._redis = redis
        self._channel = channel

    async def publish(
        self,
        conversation_id: str,
        event_type: str,
        payload: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        raw = serialize_envelope(
            BroadcastEnvelope(
                conversation_id=conversation_id,
                event_type=event_type,
                data=payload,
                exclude_connection=exclude_connection,
            )
        )
        await self._redis.publish(self._channel, raw)

    async def dispatch(self, envelope: BroadcastEnvelope) -> None:
        await self._deliver(
            envelope.conversation_id,
            envelope.event_type,
            envelope.data,
            exclude_connection=envelope.exclude_connection,
        )
