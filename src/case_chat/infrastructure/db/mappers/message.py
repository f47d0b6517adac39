from __future__ import annotations

from case_chat.domain.entities.message import Message
from case_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        seq=model.seq,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        body=model.body,
        created_at=model.created_at,
        edited_at=model.edited_at,
        is_deleted=model.is_deleted,
        deleted_at=model.deleted_at,
        read_at=model.read_at,
    )
