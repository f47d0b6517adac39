"""Consumer for case-service events via Redis Streams.

The case service owns the advisor-assignment decision; this worker turns its
events into ownership records and counterpart bindings.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable

import redis.asyncio as aioredis

from case_chat.application.dto.message import CounterpartInfo
from case_chat.application.uow import UnitOfWork
from case_chat.config import settings
from case_chat.infrastructure.bus.broadcast import RedisBroadcastChannel
from case_chat.infrastructure.bus.redis_streams import RedisStreamConsumer
from case_chat.infrastructure.cases.redis_directory import RedisCaseDirectory
from case_chat.infrastructure.db.uow import open_uow
from case_chat.infrastructure.ws.manager import ConnectionManager
from case_chat.logging_config import configure_logging
from case_chat.services.chat_facade import ChatFacade

logger = logging.getLogger(__name__)


class CaseEventHandler:
    def __init__(
        self,
        facade: ChatFacade,
        uow_factory: Callable[[], AbstractAsyncContextManager[UnitOfWork]] = open_uow,
    ) -> None:
        self._facade = facade
        self._uow_factory = uow_factory

    async def __call__(self, event_type: str, fields: dict[str, Any]) -> None:
        if event_type == "case.created":
            await self._on_case_created(fields)
        elif event_type == "case.advisor_assigned":
            await self._on_advisor_assigned(fields)
        else:
            logger.debug("Ignoring unknown event: %s", event_type)

    async def _on_case_created(self, fields: dict[str, Any]) -> None:
        case_id = fields["case_id"]
        owner_id = fields["owner_id"]
        await self._facade.register_case_owner(case_id, owner_id)
        logger.info("Registered owner %s for case %s", owner_id, case_id)

    async def _on_advisor_assigned(self, fields: dict[str, Any]) -> None:
        case_id = fields["case_id"]
        owner_id = fields.get("owner_id") or None
        if owner_id:
            await self._facade.register_case_owner(case_id, owner_id)

        counterpart = CounterpartInfo(
            counterpart_id=fields["advisor_id"],
            display_name=fields.get("advisor_name"),
            email=fields.get("advisor_email"),
            phone=fields.get("advisor_phone"),
        )
        async with self._uow_factory() as uow:
            _conv, rebound = await self._facade.bind_counterpart(
                case_id, counterpart, uow, initiator_id=owner_id,
            )
        logger.info(
            "Case %s assigned to advisor %s (%d pending messages migrated)",
            case_id, counterpart.counterpart_id, rebound,
        )


async def run_consumer() -> None:
    if settings.BROADCAST_BACKEND != "redis":
        # API instances on the local backend never subscribe to Pub/Sub, so bind
        # events published here would reach no socket.
        logger.error(
            "Case events consumer requires BROADCAST_BACKEND=redis (got %s)",
            settings.BROADCAST_BACKEND,
        )
        raise RuntimeError("Case events consumer requires BROADCAST_BACKEND=redis")

    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    consumer_name = f"consumer-{uuid.uuid4().hex[:8]}"

    # This process holds no sockets; its broadcasts reach API instances via Pub/Sub.
    broadcast = RedisBroadcastChannel(ConnectionManager(), redis, settings.REDIS_PUBSUB_CHANNEL)
    facade = ChatFacade(broadcast, RedisCaseDirectory(redis, settings.CASE_OWNER_KEY_PREFIX))

    consumer = RedisStreamConsumer(
        redis=redis,
        stream=settings.CASE_EVENTS_STREAM,
        group=settings.CASE_EVENTS_GROUP,
        consumer=consumer_name,
        callback=CaseEventHandler(facade),
    )
    await consumer.start()
    logger.info("Case events consumer started (%s)", consumer_name)

    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await consumer.stop()
        await redis.aclose()


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(run_consumer())


if __name__ == "__main__":
    main()
