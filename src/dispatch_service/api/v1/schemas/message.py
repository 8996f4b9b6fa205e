from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SendMessageRequest(BaseModel):
    id: int = Field(..., gt=0)
    content: str = Field(..., min_length=1)
    recipient_phone: str = Field(..., min_length=1, max_length=20)


class SendMessageResponse(BaseModel):
    message: str
    message_id: str | None
    status: str = "sent"


class MessageResponse(BaseModel):
    id: int
    content: str
    recipient_phone: str
    sent: bool
    sent_at: datetime | None
    message_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ClearCacheResponse(BaseModel):
    cleared: int
