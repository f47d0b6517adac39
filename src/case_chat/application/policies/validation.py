from __future__ import annotations

import re

from case_chat.application.exceptions import ValidationError

# Case ids come from the case service (Mongo ObjectIds, slugs).
_CONVERSATION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_conversation_id(raw: str) -> str:
    if not isinstance(raw, str) or not _CONVERSATION_ID_RE.match(raw):
        raise ValidationError("Malformed conversation id")
    return raw


def validate_body(raw: str | None, max_length: int) -> str:
    """Return the trimmed message body or raise."""
    body = (raw or "").strip()
    if not body:
        raise ValidationError("Message cannot be empty")
    if len(body) > max_length:
        raise ValidationError(f"Message exceeds {max_length} characters")
    return body
