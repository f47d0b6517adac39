from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    seq: int
    conversation_id: str
    sender_id: str
    receiver_id: str | None
    body: str
    created_at: datetime
    edited_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    read_at: datetime | None = None
