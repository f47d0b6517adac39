from __future__ import annotations

from typing import Any

from case_chat.application.dto.principal import Principal
from case_chat.application.exceptions import UnauthenticatedError
from case_chat.domain.value_objects.enums import ActorRole


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a Principal from decoded JWT claims.

    The platform's tokens carry the user id in ``id``; standard ``sub`` wins
    when both are present.
    """
    subject = payload.get("sub") or payload.get("id")
    if not subject:
        raise UnauthenticatedError("Token has no subject")

    role_raw = str(payload.get("role", ActorRole.STUDENT)).lower()
    try:
        role = ActorRole(role_raw)
    except ValueError:
        role = ActorRole.STUDENT

    roles = payload.get("roles") or []
    return Principal(
        role=role,
        subject_id=str(subject),
        roles=[str(r).lower() for r in roles],
        name=payload.get("name") or payload.get("fullName"),
    )
