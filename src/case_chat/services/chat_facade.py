"""Single entry point for chat reads and writes.

Every write runs authorize -> persist -> commit -> broadcast. Writes to one
conversation are serialized per process so events leave in commit order.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.exc import IntegrityError

from case_chat.application.dto.message import CounterpartInfo
from case_chat.application.dto.principal import Principal
from case_chat.application.exceptions import ConflictError, ForbiddenError, NotFoundError
from case_chat.application.policies.permissions import authorize
from case_chat.application.policies.validation import validate_body, validate_conversation_id
from case_chat.application.ports.broadcast import BroadcastChannel
from case_chat.application.ports.cases import CaseDirectory
from case_chat.application.ports.clock import Clock, SystemClock
from case_chat.application.uow import UnitOfWork
from case_chat.config import settings
from case_chat.domain.entities.conversation import Conversation
from case_chat.domain.entities.message import Message
from case_chat.domain.value_objects.enums import EventType, Operation
from case_chat.services import conversation_resolver, message_store

logger = logging.getLogger(__name__)


def message_payload(message: Message) -> dict[str, Any]:
    return {
        "id": str(message.id),
        "seq": message.seq,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "body": None if message.is_deleted else message.body,
        "created_at": message.created_at.isoformat(),
        "edited_at": message.edited_at.isoformat() if message.edited_at else None,
        "is_deleted": message.is_deleted,
        "read_at": message.read_at.isoformat() if message.read_at else None,
    }


class ChatFacade:
    def __init__(
        self,
        broadcast: BroadcastChannel,
        cases: CaseDirectory,
        clock: Clock | None = None,
        *,
        pending_observer_roles: list[str] | None = None,
    ) -> None:
        self._broadcast = broadcast
        self._cases = cases
        self._clock = clock or SystemClock()
        self._observer_roles = (
            settings.PENDING_OBSERVER_ROLES
            if pending_observer_roles is None
            else pending_observer_roles
        )
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # -- writes ---------------------------------------------------------------

    async def send_message(
        self,
        conversation_id: str,
        principal: Principal,
        text: str,
        uow: UnitOfWork,
    ) -> Message:
        validate_conversation_id(conversation_id)
        body = validate_body(text, settings.MESSAGE_MAX_LENGTH)

        async with self._serialized(conversation_id, uow):
            conversation = await uow.conversations.get_by_id(conversation_id, lock=True)
            if conversation is None:
                await self._open_for_sender(conversation_id, principal, uow)
                conversation = await uow.conversations.get_by_id(conversation_id, lock=True)

            conversation = authorize(principal, conversation, Operation.SEND)
            message = await message_store.append(
                conversation_id,
                principal.subject_id,
                conversation.other_participant(principal.subject_id),
                body,
                uow,
            )
            await uow.commit()
            logger.info(
                "Message %s stored in %s (receiver=%s)",
                message.id, conversation_id, message.receiver_id or "pending",
            )
            await self._publish(
                conversation_id, EventType.MESSAGE_CREATED, message_payload(message),
            )
        return message

    async def edit_message(
        self,
        message_id: uuid.UUID,
        principal: Principal,
        text: str,
        uow: UnitOfWork,
    ) -> Message:
        current = await message_store.get(message_id, uow)
        conversation_id = current.conversation_id

        async with self._serialized(conversation_id, uow):
            conversation = await uow.conversations.get_by_id(conversation_id)
            authorize(principal, conversation, Operation.EDIT)
            message = await message_store.edit(
                message_id, principal.subject_id, text, self._clock.now(), uow,
            )
            await uow.commit()
            await self._publish(
                conversation_id, EventType.MESSAGE_EDITED, message_payload(message),
            )
        return message

    async def delete_message(
        self,
        message_id: uuid.UUID,
        principal: Principal,
        uow: UnitOfWork,
    ) -> Message:
        current = await message_store.get(message_id, uow)
        conversation_id = current.conversation_id

        async with self._serialized(conversation_id, uow):
            conversation = await uow.conversations.get_by_id(conversation_id)
            authorize(principal, conversation, Operation.DELETE)
            message = await message_store.soft_delete(
                message_id, principal.subject_id, self._clock.now(), uow,
            )
            await uow.commit()
            await self._publish(
                conversation_id,
                EventType.MESSAGE_DELETED,
                {
                    "id": str(message.id),
                    "seq": message.seq,
                    "conversation_id": conversation_id,
                    "deleted_by": principal.subject_id,
                },
            )
        return message

    async def clear_conversation(
        self,
        conversation_id: str,
        principal: Principal,
        uow: UnitOfWork,
    ) -> int:
        validate_conversation_id(conversation_id)

        async with self._serialized(conversation_id, uow):
            conversation = await uow.conversations.get_by_id(conversation_id)
            authorize(principal, conversation, Operation.CLEAR)
            removed = await message_store.clear_all(conversation_id, uow)
            await uow.commit()
            logger.info(
                "Conversation %s cleared by %s (%d messages)",
                conversation_id, principal.subject_id, removed,
            )
            await self._publish(
                conversation_id,
                EventType.CONVERSATION_CLEARED,
                {
                    "conversation_id": conversation_id,
                    "cleared_by": principal.subject_id,
                    "cleared_by_name": principal.name,
                    "deleted_count": removed,
                    "timestamp": self._clock.now().isoformat(),
                },
            )
        return removed

    async def mark_read(
        self,
        conversation_id: str,
        principal: Principal,
        uow: UnitOfWork,
    ) -> int:
        validate_conversation_id(conversation_id)
        conversation = await uow.conversations.get_by_id(conversation_id)
        authorize(principal, conversation, Operation.MARK_READ)
        updated = await message_store.mark_read_up_to(
            conversation_id, principal.subject_id, self._clock.now(), uow,
        )
        await uow.commit()
        return updated

    async def bind_counterpart(
        self,
        conversation_id: str,
        counterpart: CounterpartInfo,
        uow: UnitOfWork,
        *,
        initiator_id: str | None = None,
    ) -> tuple[Conversation, int]:
        """Bind the case's counterpart (advisor) and notify the room.

        Called by the assignment collaborator. If nobody has written yet the
        conversation is created first, owned by ``initiator_id`` or the owner
        known to the case directory.
        """
        validate_conversation_id(conversation_id)

        async with self._serialized(conversation_id, uow):
            existing = await uow.conversations.get_by_id(conversation_id)
            if existing is None:
                owner_id = initiator_id or await self._cases.get_owner_id(conversation_id)
                if owner_id is None:
                    raise NotFoundError("Case not found")
                await conversation_resolver.get_or_create(
                    conversation_id, owner_id, self._clock.now(), uow,
                )

            rebound, event = await conversation_resolver.bind_counterpart(
                conversation_id, counterpart.counterpart_id, uow,
            )
            await uow.commit()
            conversation = await conversation_resolver.resolve(conversation_id, uow)

            if event is not None:
                logger.info(
                    "Conversation %s bound to %s (%d pending messages migrated)",
                    conversation_id, event.counterpart_id, event.rebound_count,
                )
                await self._publish(
                    conversation_id,
                    EventType.PARTICIPANT_BOUND,
                    {
                        "conversation_id": conversation_id,
                        "counterpart_id": event.counterpart_id,
                        "previous_counterpart_id": event.previous_counterpart_id,
                        "rebound_count": event.rebound_count,
                        "counterpart": counterpart.as_payload(),
                    },
                )
        return conversation, rebound

    async def register_case_owner(self, case_id: str, owner_id: str) -> None:
        validate_conversation_id(case_id)
        await self._cases.register_owner(case_id, owner_id)

    # -- reads ----------------------------------------------------------------

    async def get_history(
        self,
        conversation_id: str,
        principal: Principal,
        uow: UnitOfWork,
    ) -> list[Message]:
        """Ordered history; fetching it acknowledges the caller's inbound messages."""
        validate_conversation_id(conversation_id)
        conversation = await uow.conversations.get_by_id(conversation_id)
        conversation = authorize(
            principal, conversation, Operation.READ,
            pending_observer_roles=self._observer_roles,
        )

        if conversation.is_participant(principal.subject_id):
            marked = await message_store.mark_read_up_to(
                conversation_id, principal.subject_id, self._clock.now(), uow,
            )
            if marked:
                await uow.commit()
        return await message_store.list_ordered(conversation_id, uow)

    async def get_conversation(
        self,
        conversation_id: str,
        principal: Principal,
        uow: UnitOfWork,
    ) -> Conversation:
        validate_conversation_id(conversation_id)
        conversation = await uow.conversations.get_by_id(conversation_id)
        return authorize(
            principal, conversation, Operation.READ,
            pending_observer_roles=self._observer_roles,
        )

    async def unread_count(self, principal: Principal, uow: UnitOfWork) -> int:
        return await message_store.count_unread(principal.subject_id, uow)

    async def authorize_observation(
        self,
        conversation_id: str,
        principal: Principal,
        uow: UnitOfWork,
    ) -> None:
        """Check that ``principal`` may watch the conversation's room.

        A case owner may join before the first message exists, so the room is
        ready when the conversation is created.
        """
        validate_conversation_id(conversation_id)
        conversation = await uow.conversations.get_by_id(conversation_id)
        if conversation is not None:
            authorize(
                principal, conversation, Operation.READ,
                pending_observer_roles=self._observer_roles,
            )
            return

        owner_id = await self._cases.get_owner_id(conversation_id)
        if owner_id is None:
            raise NotFoundError("Conversation not found")
        if owner_id != principal.subject_id and not principal.has_any_role(self._observer_roles):
            raise ForbiddenError("Not a participant of this conversation")

    # -- internals ------------------------------------------------------------

    async def _open_for_sender(
        self,
        conversation_id: str,
        principal: Principal,
        uow: UnitOfWork,
    ) -> None:
        owner_id = await self._cases.get_owner_id(conversation_id)
        if owner_id is None:
            raise NotFoundError("Case not found")
        if owner_id != principal.subject_id:
            raise ForbiddenError("Not a participant of this conversation")
        _conversation, created = await conversation_resolver.get_or_create(
            conversation_id, owner_id, self._clock.now(), uow,
        )
        if created:
            logger.info("Opened conversation %s for %s", conversation_id, owner_id)

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    @asynccontextmanager
    async def _serialized(self, conversation_id: str, uow: UnitOfWork) -> AsyncIterator[None]:
        lock = self._lock_for(conversation_id)
        async with lock:
            try:
                yield
            except IntegrityError as exc:
                await uow.rollback()
                raise ConflictError("Conflicting write, please retry") from exc
            except Exception:
                await uow.rollback()
                raise

    async def _publish(
        self,
        conversation_id: str,
        event_type: EventType,
        payload: dict[str, Any],
    ) -> None:
        try:
            await self._broadcast.publish(conversation_id, event_type, payload)
        except Exception:
            logger.exception("Broadcast of %s for %s failed", event_type, conversation_id)
