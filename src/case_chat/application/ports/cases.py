from __future__ import annotations

from typing import Protocol


class CaseDirectory(Protocol):
    """Ownership lookup for cases managed by the case service."""

    async def get_owner_id(self, case_id: str) -> str | None: ...

    async def register_owner(self, case_id: str, owner_id: str) -> None: ...
