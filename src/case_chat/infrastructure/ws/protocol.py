"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from case_chat.domain.value_objects.enums import EventType


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # join-chat | leave-chat | typing | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # see WIRE_EVENT_NAMES, plus joined | left | error | pong
    data: dict[str, Any] = {}


# Event names the web client listens for.
WIRE_EVENT_NAMES: dict[str, str] = {
    EventType.MESSAGE_CREATED: "new-message",
    EventType.MESSAGE_EDITED: "receive_edit_message",
    EventType.MESSAGE_DELETED: "receive_delete_message",
    EventType.CONVERSATION_CLEARED: "chat-cleared",
    # Binding goes out under this name only; no advisor-assigned alias is sent.
    EventType.PARTICIPANT_BOUND: "participant-bound",
    EventType.TYPING: "user-typing",
}


def wire_name(event_type: str) -> str:
    return WIRE_EVENT_NAMES.get(event_type, event_type)


def error_frame(code: str, detail: str = "", **extra: Any) -> str:
    return WsOutbound(type="error", data={"code": code, "detail": detail, **extra}).model_dump_json()
