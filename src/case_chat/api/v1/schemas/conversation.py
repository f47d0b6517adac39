from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ConversationResponse(BaseModel):
    id: str
    initiator_id: str
    counterpart_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BindCounterpartRequest(BaseModel):
    counterpart_id: str = Field(min_length=1, max_length=64)
    display_name: str | None = None
    email: str | None = None
    phone: str | None = None
    initiator_id: str | None = Field(default=None, min_length=1, max_length=64)


class BindCounterpartResponse(BaseModel):
    conversation: ConversationResponse
    rebound_count: int
