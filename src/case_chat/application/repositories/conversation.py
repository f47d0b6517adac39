from __future__ import annotations

from typing import Protocol

from case_chat.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(
        self, conversation_id: str, *, lock: bool = False,
    ) -> Conversation | None:
        """Fetch a conversation. ``lock`` takes a shared row lock for the transaction."""
        ...


class ConversationWriter(Protocol):
    async def create_if_not_exists(
        self, conversation: Conversation,
    ) -> tuple[Conversation, bool]:
        """Insert conversation. Return (conversation, created). On id conflict return existing."""
        ...

    async def lock_for_update(self, conversation_id: str) -> Conversation | None: ...

    async def set_counterpart(self, conversation_id: str, counterpart_id: str) -> None: ...
