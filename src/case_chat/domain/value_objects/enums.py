from __future__ import annotations

from enum import StrEnum


class ActorRole(StrEnum):
    STUDENT = "student"
    ADVISOR = "advisor"
    DEAN = "dean"
    COMPANY_ADMIN = "company-admin"
    ADMIN = "admin"


class Operation(StrEnum):
    READ = "read"
    SEND = "send"
    EDIT = "edit"
    DELETE = "delete"
    MARK_READ = "mark_read"
    CLEAR = "clear"


class EventType(StrEnum):
    MESSAGE_CREATED = "message-created"
    MESSAGE_EDITED = "message-edited"
    MESSAGE_DELETED = "message-deleted"
    CONVERSATION_CLEARED = "conversation-cleared"
    PARTICIPANT_BOUND = "participant-bound"
    TYPING = "typing"
