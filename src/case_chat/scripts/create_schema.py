"""Create the chat tables in the configured database (idempotent)."""
from __future__ import annotations

import asyncio
import logging

from case_chat.config import settings
from case_chat.infrastructure.db.base import Base
from case_chat.infrastructure.db.models import ConversationModel, MessageModel  # noqa: F401
from case_chat.infrastructure.db.session import engine
from case_chat.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def create_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(create_schema())


if __name__ == "__main__":
    main()
