"""One-time script: create the Redis Streams consumer group for case events."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis

from case_chat.config import settings
from case_chat.infrastructure.bus.redis_streams import RedisStreamConsumer
from case_chat.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def _noop(_event_type: str, _fields: dict) -> None:
    return None


async def create_group() -> None:
    r = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        consumer = RedisStreamConsumer(
            redis=r,
            stream=settings.CASE_EVENTS_STREAM,
            group=settings.CASE_EVENTS_GROUP,
            consumer="bootstrap",
            callback=_noop,
        )
        await consumer.ensure_group()
        logger.info(
            "Consumer group '%s' ready on stream '%s'",
            settings.CASE_EVENTS_GROUP,
            settings.CASE_EVENTS_STREAM,
        )
    finally:
        await r.aclose()


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(create_group())


if __name__ == "__main__":
    main()
