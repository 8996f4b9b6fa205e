from __future__ import annotations

from typing import Protocol

from dispatch_service.application.dto.delivery import DeliveryReceipt
from dispatch_service.domain.entities.message import Message


class DeliveryClient(Protocol):
    async def deliver(self, message: Message) -> DeliveryReceipt:
        """Perform one delivery attempt.

        Raises RateLimitedError on 429 and DeliveryError on any other failure.
        """
        ...

    async def close(self) -> None: ...
