from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


@dataclass(frozen=True, slots=True)
class BroadcastEnvelope:
    conversation_id: str
    event_type: str
    data: dict[str, Any] = field(default_factory=dict)
    exclude_connection: str | None = None


def serialize_envelope(envelope: BroadcastEnvelope) -> str:
    return json.dumps(
        {
            "conversation_id": envelope.conversation_id,
            "event": envelope.event_type,
            "data": envelope.data,
            "exclude": envelope.exclude_connection,
        },
        cls=_Encoder,
    )


def deserialize_envelope(raw: str | bytes) -> BroadcastEnvelope:
    data = json.loads(raw)
    return BroadcastEnvelope(
        conversation_id=data["conversation_id"],
        event_type=data["event"],
        data=data.get("data") or {},
        exclude_connection=data.get("exclude"),
    )


def to_jsonable(payload: dict[str, Any]) -> dict[str, Any]:
    """Round-trip through the encoder so UUIDs and datetimes become strings."""
    return json.loads(json.dumps(payload, cls=_Encoder))
