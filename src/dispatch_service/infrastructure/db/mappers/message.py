from __future__ import annotations

from dispatch_service.domain.entities.message import Message
from dispatch_service.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        content=model.content,
        recipient_phone=model.recipient_phone,
        sent=model.sent,
        sent_at=model.sent_at,
        message_id=model.message_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
