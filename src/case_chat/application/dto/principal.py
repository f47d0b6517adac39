from __future__ import annotations

from dataclasses import dataclass, field

from case_chat.domain.value_objects.enums import ActorRole


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    role: ActorRole
    subject_id: str
    roles: list[str] = field(default_factory=list)
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN or "admin" in self.roles

    def has_any_role(self, roles: list[str]) -> bool:
        return self.role in roles or any(r in roles for r in self.roles)
