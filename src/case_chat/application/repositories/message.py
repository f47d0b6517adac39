from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from case_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def list_ordered(self, conversation_id: str) -> list[Message]:
        """All messages of a conversation in insertion (seq) order."""
        ...

    async def count_unread(self, receiver_id: str) -> int: ...


class MessageWriter(Protocol):
    async def append(
        self,
        message_id: UUID,
        conversation_id: str,
        sender_id: str,
        receiver_id: str | None,
        body: str,
    ) -> Message:
        """Insert a message; the database stamps ``created_at`` and ``seq``."""
        ...

    async def update_body(
        self, message_id: UUID, sender_id: str, body: str, edited_at: datetime,
    ) -> Message | None:
        """Conditional update: only the sender, only while not deleted. None on miss."""
        ...

    async def mark_deleted(
        self, message_id: UUID, sender_id: str, deleted_at: datetime,
    ) -> Message | None:
        """Conditional tombstone: only the sender, only while not deleted. None on miss."""
        ...

    async def delete_all(self, conversation_id: str) -> int: ...

    async def mark_read(
        self, conversation_id: str, receiver_id: str, read_at: datetime,
    ) -> int: ...

    async def assign_pending_receiver(
        self, conversation_id: str, sender_id: str, receiver_id: str,
    ) -> int:
        """Bulk-set receiver on messages from ``sender_id`` whose receiver is still null."""
        ...
