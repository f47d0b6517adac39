from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from case_chat.domain.entities.message import Message


class SendMessageRequest(BaseModel):
    conversation_id: str = Field(min_length=1, max_length=64)
    text: str


class EditMessageRequest(BaseModel):
    text: str


class MessageResponse(BaseModel):
    id: UUID
    seq: int
    conversation_id: str
    sender_id: str
    receiver_id: str | None
    body: str | None
    created_at: datetime
    edited_at: datetime | None
    is_deleted: bool
    read_at: datetime | None

    model_config = {"from_attributes": True}

    @classmethod
    def from_entity(cls, message: Message) -> MessageResponse:
        response = cls.model_validate(message, from_attributes=True)
        if message.is_deleted:
            response.body = None
        return response


class ClearConversationResponse(BaseModel):
    deleted_count: int


class MarkReadResponse(BaseModel):
    updated: int


class UnreadCountResponse(BaseModel):
    unread_count: int
