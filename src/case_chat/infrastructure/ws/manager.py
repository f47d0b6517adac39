"""In-process WebSocket connection manager."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from fastapi import WebSocket

from case_chat.application.dto.principal import Principal
from case_chat.infrastructure.ws.protocol import WsOutbound, wire_name

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks live connections by id and their conversation rooms.

    Room state is process-local; nothing here is persisted.
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._principals: dict[str, Principal] = {}
        self._rooms: dict[str, set[str]] = {}
        self._memberships: dict[str, set[str]] = {}

    async def connect(self, ws: WebSocket, principal: Principal) -> str:
        await ws.accept()
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = ws
        self._principals[connection_id] = principal
        logger.debug(
            "WS connected: %s as %s (total=%d)",
            connection_id, principal.subject_id, len(self._connections),
        )
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)
        self._principals.pop(connection_id, None)
        self.drop(connection_id)
        logger.debug("WS disconnected: %s", connection_id)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def principal_for(self, connection_id: str) -> Principal | None:
        return self._principals.get(connection_id)

    def subscribe(self, connection_id: str, conversation_id: str) -> None:
        if connection_id not in self._connections:
            return
        self._rooms.setdefault(conversation_id, set()).add(connection_id)
        self._memberships.setdefault(connection_id, set()).add(conversation_id)

    def unsubscribe(self, connection_id: str, conversation_id: str) -> None:
        members = self._rooms.get(conversation_id)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[conversation_id]
        joined = self._memberships.get(connection_id)
        if joined is not None:
            joined.discard(conversation_id)

    def drop(self, connection_id: str) -> None:
        for conversation_id in list(self._memberships.pop(connection_id, set())):
            self.unsubscribe(connection_id, conversation_id)

    def is_member(self, connection_id: str, conversation_id: str) -> bool:
        return conversation_id in self._memberships.get(connection_id, set())

    def rooms_of(self, connection_id: str) -> set[str]:
        return set(self._memberships.get(connection_id, set()))

    def members_of(self, conversation_id: str) -> set[str]:
        return set(self._rooms.get(conversation_id, set()))

    async def deliver(
        self,
        conversation_id: str,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> int:
        """Send one event to every connection in the room.

        Returns the number of successful sends. Failed sockets are dropped.
        """
        targets = [
            cid for cid in self._rooms.get(conversation_id, set())
            if cid != exclude_connection
        ]
        if not targets:
            return 0

        raw = WsOutbound(type=wire_name(event_type), data=data).model_dump_json()
        results = await asyncio.gather(
            *(self._safe_send(cid, raw) for cid in targets),
        )
        for cid, ok in zip(targets, results):
            if not ok:
                self.disconnect(cid)
        return sum(1 for ok in results if ok)

    async def send_to_connection(self, connection_id: str, raw: str) -> bool:
        return await self._safe_send(connection_id, raw)

    async def _safe_send(self, connection_id: str, raw: str) -> bool:
        ws = self._connections.get(connection_id)
        if ws is None:
            return False
        try:
            await ws.send_text(raw)
        except Exception:
            logger.debug("WS send failed for %s", connection_id, exc_info=True)
            return False
        return True
