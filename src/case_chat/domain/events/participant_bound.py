from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ParticipantBound:
    conversation_id: str
    counterpart_id: str
    previous_counterpart_id: str | None
    rebound_count: int
