from __future__ import annotations

from typing import Protocol

from case_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    """Turns a bearer credential (REST header or WS ``token`` query) into a Principal.

    Implementations raise ``UnauthenticatedError`` for anything they cannot verify.
    """

    async def verify(self, token: str) -> Principal: ...
