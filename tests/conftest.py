"""Shared test fixtures."""
from __future__ import annotations

import dataclasses
import itertools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from case_chat.application.dto.principal import Principal
from case_chat.domain.entities.conversation import Conversation
from case_chat.domain.entities.message import Message
from case_chat.domain.value_objects.enums import ActorRole
from case_chat.services.chat_facade import ChatFacade

CASE_ID = "case-100"
STUDENT_ID = "student-42"
ADVISOR_ID = "advisor-1"


@pytest.fixture
def student() -> Principal:
    return Principal(role=ActorRole.STUDENT, subject_id=STUDENT_ID, name="Student")


@pytest.fixture
def advisor() -> Principal:
    return Principal(role=ActorRole.ADVISOR, subject_id=ADVISOR_ID, name="Advisor")


@pytest.fixture
def admin() -> Principal:
    return Principal(role=ActorRole.ADMIN, subject_id="admin-1", roles=["admin"])


@pytest.fixture
def outsider() -> Principal:
    return Principal(role=ActorRole.STUDENT, subject_id="student-999")


def make_conversation(
    *,
    conversation_id: str = CASE_ID,
    initiator_id: str = STUDENT_ID,
    counterpart_id: str | None = None,
) -> Conversation:
    now = datetime.now(timezone.utc)
    return Conversation(
        id=conversation_id,
        initiator_id=initiator_id,
        counterpart_id=counterpart_id,
        created_at=now,
        updated_at=now,
    )


class FakeClock:
    """Deterministic clock; ``step`` of zero yields equal timestamps."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self._now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        self._step = step

    def now(self) -> datetime:
        current = self._now
        self._now = current + self._step
        return current


@dataclass
class FakeConversationReader:
    _store: dict[str, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: str, *, lock: bool = False) -> Conversation | None:
        return self._store.get(conversation_id)


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader

    async def create_if_not_exists(self, conversation: Conversation) -> tuple[Conversation, bool]:
        existing = self._reader._store.get(conversation.id)
        if existing is not None:
            return existing, False
        self._reader._store[conversation.id] = conversation
        return conversation, True

    async def lock_for_update(self, conversation_id: str) -> Conversation | None:
        return self._reader._store.get(conversation_id)

    async def set_counterpart(self, conversation_id: str, counterpart_id: str) -> None:
        current = self._reader._store[conversation_id]
        self._reader._store[conversation_id] = dataclasses.replace(
            current, counterpart_id=counterpart_id,
        )


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    async def list_ordered(self, conversation_id: str) -> list[Message]:
        rows = [m for m in self._messages if m.conversation_id == conversation_id]
        return sorted(rows, key=lambda m: m.seq)

    async def count_unread(self, receiver_id: str) -> int:
        return sum(
            1 for m in self._messages
            if m.receiver_id == receiver_id and m.read_at is None and not m.is_deleted
        )


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    _seq: Any = field(default_factory=lambda: itertools.count(1))

    def _replace(self, message_id: UUID, **changes: Any) -> Message:
        for i, m in enumerate(self._reader._messages):
            if m.id == message_id:
                updated = dataclasses.replace(m, **changes)
                self._reader._messages[i] = updated
                return updated
        raise KeyError(message_id)

    async def append(
        self,
        message_id: UUID,
        conversation_id: str,
        sender_id: str,
        receiver_id: str | None,
        body: str,
    ) -> Message:
        msg = Message(
            id=message_id,
            seq=next(self._seq),
            conversation_id=conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            body=body,
            created_at=datetime.now(timezone.utc),
        )
        self._reader._messages.append(msg)
        return msg

    async def update_body(self, message_id: UUID, sender_id: str, body: str, edited_at: datetime) -> Message | None:
        current = await self._reader.get_by_id(message_id)
        if current is None or current.sender_id != sender_id or current.is_deleted:
            return None
        return self._replace(message_id, body=body, edited_at=edited_at)

    async def mark_deleted(self, message_id: UUID, sender_id: str, deleted_at: datetime) -> Message | None:
        current = await self._reader.get_by_id(message_id)
        if current is None or current.sender_id != sender_id or current.is_deleted:
            return None
        return self._replace(message_id, is_deleted=True, deleted_at=deleted_at)

    async def delete_all(self, conversation_id: str) -> int:
        before = len(self._reader._messages)
        self._reader._messages[:] = [
            m for m in self._reader._messages if m.conversation_id != conversation_id
        ]
        return before - len(self._reader._messages)

    async def mark_read(self, conversation_id: str, receiver_id: str, read_at: datetime) -> int:
        targets = [
            m.id for m in self._reader._messages
            if m.conversation_id == conversation_id
            and m.receiver_id == receiver_id
            and m.read_at is None
        ]
        for mid in targets:
            self._replace(mid, read_at=read_at)
        return len(targets)

    async def assign_pending_receiver(self, conversation_id: str, sender_id: str, receiver_id: str) -> int:
        targets = [
            m.id for m in self._reader._messages
            if m.conversation_id == conversation_id
            and m.sender_id == sender_id
            and m.receiver_id is None
        ]
        for mid in targets:
            self._replace(mid, receiver_id=receiver_id)
        return len(targets)


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    _committed: bool = False
    commits: int = 0
    rollbacks: int = 0

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


@dataclass
class FakeCaseDirectory:
    owners: dict[str, str] = field(default_factory=dict)

    async def get_owner_id(self, case_id: str) -> str | None:
        return self.owners.get(case_id)

    async def register_owner(self, case_id: str, owner_id: str) -> None:
        self.owners[case_id] = owner_id


@dataclass
class RecordingBroadcast:
    """Broadcast channel double: records publishes and room memberships."""
    published: list[tuple[str, str, dict[str, Any], str | None]] = field(default_factory=list)
    rooms: dict[str, set[str]] = field(default_factory=dict)
    fail: bool = False

    async def publish(
        self,
        conversation_id: str,
        event_type: str,
        payload: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.published.append((conversation_id, str(event_type), payload, exclude_connection))

    def subscribe(self, connection_id: str, conversation_id: str) -> None:
        self.rooms.setdefault(conversation_id, set()).add(connection_id)

    def unsubscribe(self, connection_id: str, conversation_id: str) -> None:
        self.rooms.get(conversation_id, set()).discard(connection_id)

    def drop(self, connection_id: str) -> None:
        for members in self.rooms.values():
            members.discard(connection_id)

    def events(self, event_type: str) -> list[dict[str, Any]]:
        return [p for _c, t, p, _x in self.published if t == event_type]


class FakeWebSocket:
    """Just enough of starlette's WebSocket for the connection manager."""

    def __init__(self, *, broken: bool = False) -> None:
        self.accepted = False
        self.sent: list[str] = []
        self.broken = broken

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(data)


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def cases() -> FakeCaseDirectory:
    return FakeCaseDirectory(owners={CASE_ID: STUDENT_ID})


@pytest.fixture
def broadcast() -> RecordingBroadcast:
    return RecordingBroadcast()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def facade(broadcast: RecordingBroadcast, cases: FakeCaseDirectory, clock: FakeClock) -> ChatFacade:
    return ChatFacade(broadcast, cases, clock, pending_observer_roles=["admin", "dean"])


def new_id() -> UUID:
    return uuid.uuid4()
