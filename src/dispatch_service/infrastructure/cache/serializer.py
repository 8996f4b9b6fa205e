"""JSON (de)serialisation of the sent-messages snapshot."""
from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any

from dispatch_service.domain.entities.message import Message

_DATETIME_FIELDS = ("sent_at", "created_at", "updated_at")


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_messages(messages: list[Message]) -> str:
    return json.dumps([asdict(m) for m in messages], cls=_Encoder)


def deserialize_messages(raw: str | bytes) -> list[Message]:
    """Decode a snapshot. Raises ValueError on malformed input."""
    try:
        items = json.loads(raw)
        if not isinstance(items, list):
            raise ValueError("snapshot is not a JSON array")
        return [_to_message(item) for item in items]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed snapshot: {exc}") from exc


def _to_message(item: dict[str, Any]) -> Message:
    data = dict(item)
    for name in _DATETIME_FIELDS:
        value = data.get(name)
        data[name] = datetime.fromisoformat(value) if value else None
    return Message(
        id=int(data["id"]),
        content=data["content"],
        recipient_phone=data["recipient_phone"],
        sent=bool(data["sent"]),
        sent_at=data["sent_at"],
        message_id=data.get("message_id"),
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )
