from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Conversation:
    id: str
    initiator_id: str
    counterpart_id: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_bound(self) -> bool:
        return self.counterpart_id is not None

    def is_participant(self, actor_id: str) -> bool:
        return actor_id == self.initiator_id or (
            self.counterpart_id is not None and actor_id == self.counterpart_id
        )

    def other_participant(self, actor_id: str) -> str | None:
        """Return the receiver for a message sent by ``actor_id``."""
        if actor_id == self.initiator_id:
            return self.counterpart_id
        return self.initiator_id
