from __future__ import annotations

from case_chat.domain.entities.conversation import Conversation
from case_chat.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        initiator_id=model.initiator_id,
        counterpart_id=model.counterpart_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_values(entity: Conversation) -> dict:
    return {
        "id": entity.id,
        "initiator_id": entity.initiator_id,
        "counterpart_id": entity.counterpart_id,
        "created_at": entity.created_at,
        "updated_at": entity.updated_at,
    }
