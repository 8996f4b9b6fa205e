from __future__ import annotations

from fastapi import APIRouter

from dispatch_service.api.deps import SenderDep, StoreDep
from dispatch_service.api.v1.schemas.message import (
    ClearCacheResponse,
    MessageResponse,
    SendMessageRequest,
    SendMessageResponse,
)

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("/send", response_model=SendMessageResponse, status_code=202)
async def send_message(
    body: SendMessageRequest,
    store: StoreDep,
    sender: SenderDep,
) -> SendMessageResponse:
    message = await store.get_message(body.id)
    if message is None:
        message = await store.create_message(body.id, body.content, body.recipient_phone)
    receipt = await sender.send_message(message)
    return SendMessageResponse(message=receipt.message, message_id=receipt.message_id)


@router.get("/sent", response_model=list[MessageResponse])
async def list_sent_messages(sender: SenderDep) -> list[MessageResponse]:
    messages = await sender.get_sent_messages()
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post("/cache/clear", response_model=ClearCacheResponse)
async def clear_message_cache(sender: SenderDep) -> ClearCacheResponse:
    cleared = await sender.clear_message_cache()
    return ClearCacheResponse(cleared=cleared)
