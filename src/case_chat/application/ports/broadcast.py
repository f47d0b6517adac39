from __future__ import annotations

from typing import Any, Protocol


class BroadcastChannel(Protocol):
    """Room-scoped fan-out of conversation events to live connections."""

    async def publish(
        self,
        conversation_id: str,
        event_type: str,
        payload: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None: ...

    def subscribe(self, connection_id: str, conversation_id: str) -> None: ...

    def unsubscribe(self, connection_id: str, conversation_id: str) -> None: ...

    def drop(self, connection_id: str) -> None:
        """Forget every room membership of a connection."""
        ...
