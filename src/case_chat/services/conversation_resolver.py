from __future__ import annotations

from datetime import datetime

from case_chat.application.exceptions import NotFoundError, ValidationError
from case_chat.application.uow import UnitOfWork
from case_chat.domain.entities.conversation import Conversation
from case_chat.domain.events.participant_bound import ParticipantBound


async def resolve(
    conversation_id: str,
    uow: UnitOfWork,
    *,
    lock: bool = False,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id, lock=lock)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


async def get_or_create(
    conversation_id: str,
    initiator_id: str,
    now: datetime,
    uow: UnitOfWork,
) -> tuple[Conversation, bool]:
    """Return the case's conversation, creating it with ``initiator_id`` if absent.

    Concurrent first sends race on the primary key; the loser reads the
    winner's row.
    """
    existing = await uow.conversations.get_by_id(conversation_id)
    if existing is not None:
        return existing, False

    conversation = Conversation(
        id=conversation_id,
        initiator_id=initiator_id,
        counterpart_id=None,
        created_at=now,
        updated_at=now,
    )
    return await uow.conversations_w.create_if_not_exists(conversation)


async def bind_counterpart(
    conversation_id: str,
    counterpart_id: str,
    uow: UnitOfWork,
) -> tuple[int, ParticipantBound | None]:
    """Bind the counterpart and migrate the initiator's pending messages to it.

    The conversation row is locked FOR UPDATE first. Appends hold FOR SHARE on
    the same row, so every append either commits before the bulk update below
    (and is rewritten by it) or starts after and sees the counterpart.

    Rebinding to the same id is a no-op. Rebinding to a different id is
    accepted; messages already addressed to the previous counterpart keep
    their receiver.

    Returns (rebound_count, event); event is None when nothing changed.
    """
    conversation = await uow.conversations_w.lock_for_update(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    if counterpart_id == conversation.initiator_id:
        raise ValidationError("Counterpart cannot be the conversation initiator")
    if conversation.counterpart_id == counterpart_id:
        return 0, None

    await uow.conversations_w.set_counterpart(conversation_id, counterpart_id)
    rebound = await uow.messages_w.assign_pending_receiver(
        conversation_id, conversation.initiator_id, counterpart_id,
    )
    event = ParticipantBound(
        conversation_id=conversation_id,
        counterpart_id=counterpart_id,
        previous_counterpart_id=conversation.counterpart_id,
        rebound_count=rebound,
    )
    return rebound, event
