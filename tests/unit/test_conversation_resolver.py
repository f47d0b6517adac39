from __future__ import annotations

from datetime import datetime, timezone

import pytest

from case_chat.application.exceptions import NotFoundError, ValidationError
from case_chat.services import conversation_resolver, message_store
from tests.conftest import ADVISOR_ID, CASE_ID, STUDENT_ID, FakeUoW, make_conversation

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_get_or_create_creates_once():
    uow = FakeUoW()

    conv, created = await conversation_resolver.get_or_create(CASE_ID, STUDENT_ID, NOW, uow)
    again, created_again = await conversation_resolver.get_or_create(CASE_ID, "someone-else", NOW, uow)

    assert created is True
    assert created_again is False
    assert conv.initiator_id == STUDENT_ID
    assert again.initiator_id == STUDENT_ID
    assert conv.counterpart_id is None


@pytest.mark.asyncio
async def test_resolve_missing_raises():
    with pytest.raises(NotFoundError):
        await conversation_resolver.resolve("nope", FakeUoW())


@pytest.mark.asyncio
async def test_bind_rebinds_pending_messages():
    uow = FakeUoW()
    conv = make_conversation()
    uow.conversations._store[conv.id] = conv
    await message_store.append(CASE_ID, STUDENT_ID, None, "hello?", uow)
    await message_store.append(CASE_ID, STUDENT_ID, None, "anyone?", uow)

    rebound, event = await conversation_resolver.bind_counterpart(CASE_ID, ADVISOR_ID, uow)

    assert rebound == 2
    assert event is not None
    assert event.counterpart_id == ADVISOR_ID
    assert event.previous_counterpart_id is None
    bound = await conversation_resolver.resolve(CASE_ID, uow)
    assert bound.counterpart_id == ADVISOR_ID
    history = await message_store.list_ordered(CASE_ID, uow)
    assert all(m.receiver_id == ADVISOR_ID for m in history)


@pytest.mark.asyncio
async def test_bind_same_counterpart_is_noop():
    uow = FakeUoW()
    conv = make_conversation(counterpart_id=ADVISOR_ID)
    uow.conversations._store[conv.id] = conv

    rebound, event = await conversation_resolver.bind_counterpart(CASE_ID, ADVISOR_ID, uow)

    assert rebound == 0
    assert event is None


@pytest.mark.asyncio
async def test_rebind_to_new_counterpart_keeps_old_receivers():
    uow = FakeUoW()
    conv = make_conversation(counterpart_id=ADVISOR_ID)
    uow.conversations._store[conv.id] = conv
    await message_store.append(CASE_ID, STUDENT_ID, ADVISOR_ID, "to first advisor", uow)

    rebound, event = await conversation_resolver.bind_counterpart(CASE_ID, "advisor-2", uow)

    assert rebound == 0
    assert event.previous_counterpart_id == ADVISOR_ID
    history = await message_store.list_ordered(CASE_ID, uow)
    assert history[0].receiver_id == ADVISOR_ID


@pytest.mark.asyncio
async def test_bind_initiator_as_counterpart_rejected():
    uow = FakeUoW()
    conv = make_conversation()
    uow.conversations._store[conv.id] = conv

    with pytest.raises(ValidationError):
        await conversation_resolver.bind_counterpart(CASE_ID, STUDENT_ID, uow)


@pytest.mark.asyncio
async def test_bind_unknown_conversation():
    with pytest.raises(NotFoundError):
        await conversation_resolver.bind_counterpart("missing", ADVISOR_ID, FakeUoW())
