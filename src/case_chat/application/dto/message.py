from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class CounterpartInfo:
    """Display metadata supplied by the assignment collaborator."""

    counterpart_id: str
    display_name: str | None = None
    email: str | None = None
    phone: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_payload(self) -> dict[str, Any]:
        return {
            "id": self.counterpart_id,
            "display_name": self.display_name,
            "email": self.email,
            "phone": self.phone,
            **self.extra,
        }
