from __future__ import annotations

import json
from contextlib import asynccontextmanager

import pytest

from case_chat.application.dto.message import CounterpartInfo
from case_chat.application.dto.principal import Principal
from case_chat.application.exceptions import ForbiddenError, NotFoundError, UnauthenticatedError
from case_chat.domain.value_objects.enums import ActorRole
from case_chat.infrastructure.bus.broadcast import LocalBroadcastChannel
from case_chat.infrastructure.ws.manager import ConnectionManager
from case_chat.services.chat_facade import ChatFacade
from case_chat.services.presence_gateway import PresenceGateway
from tests.conftest import (
    ADVISOR_ID,
    CASE_ID,
    STUDENT_ID,
    FakeCaseDirectory,
    FakeClock,
    FakeUoW,
    FakeWebSocket,
    make_conversation,
)


class StaticVerifier:
    def __init__(self, principals: dict[str, Principal]) -> None:
        self._principals = principals

    async def verify(self, token: str) -> Principal:
        try:
            return self._principals[token]
        except KeyError:
            raise UnauthenticatedError("Invalid token") from None


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def gateway(manager, cases, uow, student, advisor, outsider) -> PresenceGateway:
    channel = LocalBroadcastChannel(manager)
    facade = ChatFacade(channel, cases, FakeClock(), pending_observer_roles=["admin"])
    verifier = StaticVerifier({"s": student, "a": advisor, "o": outsider})

    @asynccontextmanager
    async def uow_factory():
        yield uow

    gateway = PresenceGateway(verifier, manager, channel, facade, uow_factory=uow_factory)
    channel.add_delivery_hook(gateway.on_room_event)
    return gateway


def _frames(ws: FakeWebSocket) -> list[dict]:
    return [json.loads(raw) for raw in ws.sent]


@pytest.mark.asyncio
async def test_authenticate_connection(gateway, student):
    assert await gateway.authenticate_connection("s") == student
    with pytest.raises(UnauthenticatedError):
        await gateway.authenticate_connection(None)
    with pytest.raises(UnauthenticatedError):
        await gateway.authenticate_connection("bogus")


@pytest.mark.asyncio
async def test_join_then_receive_new_message(gateway, manager, uow, student):
    ws = FakeWebSocket()
    cid = await manager.connect(ws, student)

    await gateway.join(cid, CASE_ID, uow)
    facade: ChatFacade = gateway._facade
    await facade.send_message(CASE_ID, student, "hello room", uow)

    frames = _frames(ws)
    assert frames[-1]["type"] == "new-message"
    assert frames[-1]["data"]["body"] == "hello room"


@pytest.mark.asyncio
async def test_unauthorized_join_does_not_subscribe(gateway, manager, uow, outsider):
    uow.conversations._store[CASE_ID] = make_conversation(counterpart_id=ADVISOR_ID)
    ws = FakeWebSocket()
    cid = await manager.connect(ws, outsider)

    with pytest.raises(ForbiddenError):
        await gateway.join(cid, CASE_ID, uow)

    assert manager.rooms_of(cid) == set()


@pytest.mark.asyncio
async def test_join_unknown_case(gateway, manager, uow, student):
    cid = await manager.connect(FakeWebSocket(), student)

    with pytest.raises(NotFoundError):
        await gateway.join(cid, "case-nowhere", uow)


@pytest.mark.asyncio
async def test_leave_stops_delivery(gateway, manager, uow, student):
    ws = FakeWebSocket()
    cid = await manager.connect(ws, student)
    await gateway.join(cid, CASE_ID, uow)

    gateway.leave(cid, CASE_ID)
    await gateway._facade.send_message(CASE_ID, student, "nobody listening", uow)

    assert ws.sent == []


@pytest.mark.asyncio
async def test_disconnect_removes_all_memberships(gateway, manager, uow, student, cases):
    cases.owners["case-2"] = student.subject_id
    cid = await manager.connect(FakeWebSocket(), student)
    await gateway.join(cid, CASE_ID, uow)
    await gateway.join(cid, "case-2", uow)

    gateway.on_disconnect(cid)

    assert manager.rooms_of(cid) == set()
    assert manager.members_of(CASE_ID) == set()
    assert manager.connection_count == 0
    assert uow._committed is False


@pytest.mark.asyncio
async def test_typing_relayed_to_others_only(gateway, manager, uow, student, advisor):
    uow.conversations._store[CASE_ID] = make_conversation(counterpart_id=ADVISOR_ID)
    student_ws, advisor_ws = FakeWebSocket(), FakeWebSocket()
    s_cid = await manager.connect(student_ws, student)
    a_cid = await manager.connect(advisor_ws, advisor)
    await gateway.join(s_cid, CASE_ID, uow)
    await gateway.join(a_cid, CASE_ID, uow)

    await gateway.relay_typing(s_cid, CASE_ID, True)

    assert student_ws.sent == []
    frame = _frames(advisor_ws)[0]
    assert frame["type"] == "user-typing"
    assert frame["data"] == {
        "conversation_id": CASE_ID,
        "user_id": student.subject_id,
        "is_typing": True,
    }


@pytest.mark.asyncio
async def test_typing_requires_membership(gateway, manager, student):
    cid = await manager.connect(FakeWebSocket(), student)

    with pytest.raises(ForbiddenError):
        await gateway.relay_typing(cid, CASE_ID, True)


@pytest.mark.asyncio
async def test_observer_joins_pending_room():
    manager = ConnectionManager()
    channel = LocalBroadcastChannel(manager)
    uow = FakeUoW()
    uow.conversations._store[CASE_ID] = make_conversation()
    facade = ChatFacade(channel, FakeCaseDirectory(), FakeClock(), pending_observer_roles=["dean"])
    gateway = PresenceGateway(StaticVerifier({}), manager, channel, facade)
    dean = Principal(role=ActorRole.DEAN, subject_id="dean-1")
    cid = await manager.connect(FakeWebSocket(), dean)

    await gateway.join(cid, CASE_ID, uow)

    assert manager.is_member(cid, CASE_ID)


async def _bind(gateway, uow, counterpart_id=ADVISOR_ID):
    return await gateway._facade.bind_counterpart(
        CASE_ID, CounterpartInfo(counterpart_id=counterpart_id), uow,
    )


@pytest.mark.asyncio
async def test_bind_evicts_pending_observer(gateway, manager, uow, student, admin):
    uow.conversations._store[CASE_ID] = make_conversation()
    admin_ws, student_ws = FakeWebSocket(), FakeWebSocket()
    admin_cid = await manager.connect(admin_ws, admin)
    student_cid = await manager.connect(student_ws, student)
    await gateway.join(admin_cid, CASE_ID, uow)
    await gateway.join(student_cid, CASE_ID, uow)

    await _bind(gateway, uow)
    await gateway._facade.send_message(CASE_ID, student, "private now", uow)

    assert not manager.is_member(admin_cid, CASE_ID)
    assert _frames(admin_ws) == [
        {"type": "left", "data": {"conversation_id": CASE_ID, "reason": "access_revoked"}},
    ]
    assert [f["type"] for f in _frames(student_ws)] == ["participant-bound", "new-message"]


@pytest.mark.asyncio
async def test_rebind_evicts_previous_counterpart(gateway, manager, uow, student, advisor):
    uow.conversations._store[CASE_ID] = make_conversation(counterpart_id=ADVISOR_ID)
    old_ws = FakeWebSocket()
    old_cid = await manager.connect(old_ws, advisor)
    await gateway.join(old_cid, CASE_ID, uow)

    await _bind(gateway, uow, counterpart_id="advisor-2")
    await gateway._facade.send_message(CASE_ID, student, "for the new advisor", uow)

    assert manager.members_of(CASE_ID) == set()
    frames = _frames(old_ws)
    assert [f["type"] for f in frames] == ["left"]
    assert frames[0]["data"]["reason"] == "access_revoked"


@pytest.mark.asyncio
async def test_rebind_keeps_initiator_and_new_counterpart(gateway, manager, uow, student):
    uow.conversations._store[CASE_ID] = make_conversation(counterpart_id=ADVISOR_ID)
    new_advisor = Principal(role=ActorRole.ADVISOR, subject_id="advisor-2")
    student_cid = await manager.connect(FakeWebSocket(), student)
    await gateway.join(student_cid, CASE_ID, uow)

    await _bind(gateway, uow, counterpart_id="advisor-2")
    new_cid = await manager.connect(FakeWebSocket(), new_advisor)
    await gateway.join(new_cid, CASE_ID, uow)

    assert manager.members_of(CASE_ID) == {student_cid, new_cid}
    assert uow.conversations._store[CASE_ID].initiator_id == STUDENT_ID


@pytest.mark.asyncio
async def test_room_events_other_than_bind_do_not_revalidate(gateway, manager, uow, admin):
    uow.conversations._store[CASE_ID] = make_conversation()
    admin_cid = await manager.connect(FakeWebSocket(), admin)
    await gateway.join(admin_cid, CASE_ID, uow)
    uow.conversations._store[CASE_ID] = make_conversation(counterpart_id=ADVISOR_ID)

    await gateway.on_room_event(CASE_ID, "message-created", {})

    assert manager.is_member(admin_cid, CASE_ID)
