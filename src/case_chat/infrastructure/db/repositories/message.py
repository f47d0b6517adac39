from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from case_chat.domain.entities.message import Message
from case_chat.infrastructure.db.mappers import message as mapper
from case_chat.infrastructure.db.models.message import MessageModel


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: UUID) -> Message | None:
        stmt = (
            select(MessageModel)
            .where(MessageModel.id == message_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_ordered(self, conversation_id: str) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.seq.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count_unread(self, receiver_id: str) -> int:
        stmt = select(func.count()).select_from(MessageModel).where(
            MessageModel.receiver_id == receiver_id,
            MessageModel.read_at.is_(None),
            MessageModel.is_deleted.is_(False),
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        message_id: UUID,
        conversation_id: str,
        sender_id: str,
        receiver_id: str | None,
        body: str,
    ) -> Message:
        stmt = (
            pg_insert(MessageModel)
            .values(
                id=message_id,
                conversation_id=conversation_id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                body=body,
            )
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

    async def update_body(
        self,
        message_id: UUID,
        sender_id: str,
        body: str,
        edited_at: datetime,
    ) -> Message | None:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.sender_id == sender_id,
                MessageModel.is_deleted.is_(False),
            )
            .values(body=body, edited_at=edited_at)
            .returning(MessageModel)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def mark_deleted(
        self,
        message_id: UUID,
        sender_id: str,
        deleted_at: datetime,
    ) -> Message | None:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.sender_id == sender_id,
                MessageModel.is_deleted.is_(False),
            )
            .values(is_deleted=True, deleted_at=deleted_at)
            .returning(MessageModel)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def delete_all(self, conversation_id: str) -> int:
        stmt = (
            delete(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def mark_read(
        self,
        conversation_id: str,
        receiver_id: str,
        read_at: datetime,
    ) -> int:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.receiver_id == receiver_id,
                MessageModel.read_at.is_(None),
            )
            .values(read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def assign_pending_receiver(
        self,
        conversation_id: str,
        sender_id: str,
        receiver_id: str,
    ) -> int:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.sender_id == sender_id,
                MessageModel.receiver_id.is_(None),
            )
            .values(receiver_id=receiver_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0
