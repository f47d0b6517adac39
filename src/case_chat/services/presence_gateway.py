from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable

from case_chat.application.dto.principal import Principal
from case_chat.application.exceptions import ForbiddenError, NotFoundError, UnauthenticatedError
from case_chat.application.ports.auth import TokenVerifier
from case_chat.application.ports.broadcast import BroadcastChannel
from case_chat.application.uow import UnitOfWork
from case_chat.domain.value_objects.enums import EventType
from case_chat.infrastructure.ws.manager import ConnectionManager
from case_chat.infrastructure.ws.protocol import WsOutbound
from case_chat.services.chat_facade import ChatFacade

logger = logging.getLogger(__name__)


class PresenceGateway:
    """Authenticates socket connections and manages their room memberships."""

    def __init__(
        self,
        verifier: TokenVerifier,
        manager: ConnectionManager,
        broadcast: BroadcastChannel,
        facade: ChatFacade,
        *,
        uow_factory: Callable[[], AbstractAsyncContextManager[UnitOfWork]] | None = None,
    ) -> None:
        self._verifier = verifier
        self._manager = manager
        self._broadcast = broadcast
        self._facade = facade
        self._uow_factory = uow_factory

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    async def authenticate_connection(self, credential: str | None) -> Principal:
        if not credential:
            raise UnauthenticatedError("Missing credential")
        return await self._verifier.verify(credential)

    async def join(self, connection_id: str, conversation_id: str, uow: UnitOfWork) -> None:
        """Subscribe the connection to the room once the guard allows it."""
        principal = self._principal(connection_id)
        await self._facade.authorize_observation(conversation_id, principal, uow)
        self._broadcast.subscribe(connection_id, conversation_id)
        logger.debug("Connection %s joined %s", connection_id, conversation_id)

    def leave(self, connection_id: str, conversation_id: str) -> None:
        self._broadcast.unsubscribe(connection_id, conversation_id)
        logger.debug("Connection %s left %s", connection_id, conversation_id)

    async def revalidate_room(self, conversation_id: str, uow: UnitOfWork) -> list[str]:
        """Re-run the read guard for every member and evict those now denied.

        A bind or rebind changes who may read; pending observers and the
        previous counterpart lose the room here. Returns the evicted ids.
        """
        evicted: list[str] = []
        for connection_id in sorted(self._manager.members_of(conversation_id)):
            principal = self._manager.principal_for(connection_id)
            try:
                if principal is None:
                    raise ForbiddenError("Unknown connection")
                await self._facade.authorize_observation(conversation_id, principal, uow)
            except (ForbiddenError, NotFoundError):
                self._broadcast.unsubscribe(connection_id, conversation_id)
                await self._manager.send_to_connection(
                    connection_id,
                    WsOutbound(
                        type="left",
                        data={"conversation_id": conversation_id, "reason": "access_revoked"},
                    ).model_dump_json(),
                )
                evicted.append(connection_id)
        if evicted:
            logger.info(
                "Revoked %d connection(s) from %s after rebind",
                len(evicted), conversation_id,
            )
        return evicted

    async def on_room_event(
        self,
        conversation_id: str,
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        """Delivery hook: shrink the room before a bind reaches it."""
        if event_type != EventType.PARTICIPANT_BOUND or self._uow_factory is None:
            return
        if not self._manager.members_of(conversation_id):
            return
        async with self._uow_factory() as uow:
            await self.revalidate_room(conversation_id, uow)

    def on_disconnect(self, connection_id: str) -> None:
        self._broadcast.drop(connection_id)
        self._manager.disconnect(connection_id)

    async def relay_typing(
        self,
        connection_id: str,
        conversation_id: str,
        is_typing: bool,
    ) -> None:
        """Forward a typing signal to the rest of the room. Never persisted."""
        if not self._manager.is_member(connection_id, conversation_id):
            raise ForbiddenError("Join the conversation before sending typing signals")
        principal = self._principal(connection_id)
        await self._broadcast.publish(
            conversation_id,
            EventType.TYPING,
            {
                "conversation_id": conversation_id,
                "user_id": principal.subject_id,
                "is_typing": is_typing,
            },
            exclude_connection=connection_id,
        )

    def _principal(self, connection_id: str) -> Principal:
        principal = self._manager.principal_for(connection_id)
        if principal is None:
            raise UnauthenticatedError("Unknown connection")
        return principal
