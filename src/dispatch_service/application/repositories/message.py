from __future__ import annotations

from typing import Protocol

from dispatch_service.domain.entities.message import Message


class MessageStore(Protocol):
    async def get_unsent_messages(self, limit: int) -> list[Message]:
        """Return up to ``limit`` messages with sent=false. No ordering guarantee."""
        ...

    async def update_message_sent(self, id: int, message_id: str | None = None) -> None:
        """Atomically mark a message sent. Raises NotFoundError if nothing was persisted."""
        ...

    async def get_sent_messages(self) -> list[Message]: ...

    async def get_message(self, id: int) -> Message | None: ...

    async def create_message(self, id: int, content: str, recipient_phone: str) -> Message: ...
