from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    content: str
    recipient_phone: str
    sent: bool
    sent_at: datetime | None
    message_id: str | None
    created_at: datetime
    updated_at: datetime
