"""Durable, ordered message log per conversation.

Ownership and tombstone checks for edit/delete are part of the conditional
UPDATE, so they are evaluated against the row as it is when the write lands.
On a miss the row is re-read only to choose the error.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from case_chat.application.exceptions import ConflictError, ForbiddenError, NotFoundError
from case_chat.application.policies.validation import validate_body
from case_chat.application.uow import UnitOfWork
from case_chat.config import settings
from case_chat.domain.entities.message import Message


async def append(
    conversation_id: str,
    sender_id: str,
    receiver_id: str | None,
    body: str,
    uow: UnitOfWork,
) -> Message:
    text = validate_body(body, settings.MESSAGE_MAX_LENGTH)
    return await uow.messages_w.append(
        uuid.uuid4(), conversation_id, sender_id, receiver_id, text,
    )


async def list_ordered(conversation_id: str, uow: UnitOfWork) -> list[Message]:
    return await uow.messages.list_ordered(conversation_id)


async def get(message_id: uuid.UUID, uow: UnitOfWork) -> Message:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    return message


async def edit(
    message_id: uuid.UUID,
    actor_id: str,
    new_body: str,
    now: datetime,
    uow: UnitOfWork,
) -> Message:
    text = validate_body(new_body, settings.MESSAGE_MAX_LENGTH)
    updated = await uow.messages_w.update_body(message_id, actor_id, text, now)
    if updated is None:
        await _raise_for_miss(message_id, actor_id, uow)
    return updated  # type: ignore[return-value]


async def soft_delete(
    message_id: uuid.UUID,
    actor_id: str,
    now: datetime,
    uow: UnitOfWork,
) -> Message:
    deleted = await uow.messages_w.mark_deleted(message_id, actor_id, now)
    if deleted is None:
        await _raise_for_miss(message_id, actor_id, uow)
    return deleted  # type: ignore[return-value]


async def clear_all(conversation_id: str, uow: UnitOfWork) -> int:
    return await uow.messages_w.delete_all(conversation_id)


async def mark_read_up_to(
    conversation_id: str,
    receiver_id: str,
    now: datetime,
    uow: UnitOfWork,
) -> int:
    return await uow.messages_w.mark_read(conversation_id, receiver_id, now)


async def count_unread(receiver_id: str, uow: UnitOfWork) -> int:
    return await uow.messages.count_unread(receiver_id)


async def _raise_for_miss(message_id: uuid.UUID, actor_id: str, uow: UnitOfWork) -> None:
    current = await uow.messages.get_by_id(message_id)
    if current is None:
        raise NotFoundError("Message not found")
    if current.sender_id != actor_id:
        raise ForbiddenError("Only the sender may change this message")
    if current.is_deleted:
        raise ConflictError("Message has been deleted")
    # Row matched every condition on re-read; the write lost a race.
    raise ConflictError("Message changed concurrently")
