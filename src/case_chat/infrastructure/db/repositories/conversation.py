from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from case_chat.domain.entities.conversation import Conversation
from case_chat.infrastructure.db.mappers import conversation as mapper
from case_chat.infrastructure.db.models.conversation import ConversationModel


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(
        self,
        conversation_id: str,
        *,
        lock: bool = False,
    ) -> Conversation | None:
        stmt = select(ConversationModel).where(ConversationModel.id == conversation_id)
        if lock:
            # FOR SHARE: appends run concurrently but wait for a pending bind.
            stmt = stmt.with_for_update(read=True)
        stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(
        self,
        conversation: Conversation,
    ) -> tuple[Conversation, bool]:
        """Insert conversation idempotently. Returns (conversation, created_flag)."""
        stmt = (
            pg_insert(ConversationModel)
            .values(**mapper.entity_to_values(conversation))
            .on_conflict_do_nothing(index_elements=[ConversationModel.id])
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        existing = await self._session.execute(
            select(ConversationModel)
            .where(ConversationModel.id == conversation.id)
            .execution_options(populate_existing=True)
        )
        return mapper.model_to_entity(existing.scalar_one()), False

    async def lock_for_update(self, conversation_id: str) -> Conversation | None:
        stmt = (
            select(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def set_counterpart(self, conversation_id: str, counterpart_id: str) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(counterpart_id=counterpart_id)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
