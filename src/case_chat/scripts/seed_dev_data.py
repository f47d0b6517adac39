"""Seed development data: one pending and one bound case conversation."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis

from case_chat.application.dto.message import CounterpartInfo
from case_chat.application.dto.principal import Principal
from case_chat.config import settings
from case_chat.domain.value_objects.enums import ActorRole
from case_chat.infrastructure.bus.broadcast import RedisBroadcastChannel
from case_chat.infrastructure.cases.redis_directory import RedisCaseDirectory
from case_chat.infrastructure.db.session import AsyncSessionLocal
from case_chat.infrastructure.db.uow import SqlAlchemyUoW
from case_chat.infrastructure.ws.manager import ConnectionManager
from case_chat.logging_config import configure_logging
from case_chat.services.chat_facade import ChatFacade

logger = logging.getLogger(__name__)

STUDENT = Principal(role=ActorRole.STUDENT, subject_id="student-42", name="Abebe Kebede")
ADVISOR = Principal(role=ActorRole.ADVISOR, subject_id="advisor-1", name="Dr. Selam")


async def seed() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    broadcast = RedisBroadcastChannel(ConnectionManager(), redis, settings.REDIS_PUBSUB_CHANNEL)
    facade = ChatFacade(broadcast, RedisCaseDirectory(redis, settings.CASE_OWNER_KEY_PREFIX))

    try:
        for case_id in ("case-pending", "case-bound"):
            await facade.register_case_owner(case_id, STUDENT.subject_id)

        async with AsyncSessionLocal() as session:
            uow = SqlAlchemyUoW(session)
            await facade.send_message("case-pending", STUDENT, "Hello, is anyone reviewing my application?", uow)

            await facade.send_message("case-bound", STUDENT, "I uploaded my first weekly report.", uow)
            await facade.bind_counterpart(
                "case-bound", CounterpartInfo(ADVISOR.subject_id, display_name=ADVISOR.name), uow,
            )
            await facade.send_message("case-bound", ADVISOR, "Thanks, I will review it today.", uow)
    finally:
        await redis.aclose()

    logger.info("Seeded conversations case-pending and case-bound")


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
