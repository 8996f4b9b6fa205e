"""
Webhook delivery client.

Performs a single outbound POST per message and classifies the response.
Retries are not attempted here: an undelivered message stays unsent and is
picked up again by a later cycle.
"""
from __future__ import annotations

import asyncio
import logging

import aiohttp

from dispatch_service.application.dto.delivery import DeliveryReceipt
from dispatch_service.application.exceptions import DeliveryError, RateLimitedError
from dispatch_service.domain.entities.message import Message

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = frozenset({200, 202})
RATE_LIMITED_STATUS = 429


class WebhookDeliveryClient:
    """Implements application.ports.delivery.DeliveryClient."""

    def __init__(
        self,
        url: str,
        auth_key: str,
        *,
        auth_header: str = "x-ins-auth-key",
        timeout_s: float = 10.0,
    ) -> None:
        self._url = url
        self._auth_key = auth_key
        self._auth_header = auth_header
        self._timeout_s = timeout_s
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def deliver(self, message: Message) -> DeliveryReceipt:
        payload = {"to": message.recipient_phone, "content": message.content}
        headers = {
            "Content-Type": "application/json",
            self._auth_header: self._auth_key,
        }

        try:
            session = await self._get_session()
            async with session.post(self._url, json=payload, headers=headers) as resp:
                status = resp.status

                if status == RATE_LIMITED_STATUS:
                    retry_after = _parse_retry_after(resp.headers.get("Retry-After"))
                    logger.warning(
                        "Delivery of message %d rate limited (retry_after=%s)",
                        message.id,
                        retry_after,
                    )
                    raise RateLimitedError(
                        f"rate limited delivering message {message.id}",
                        retry_after_s=retry_after,
                    )

                if status not in ACCEPTED_STATUSES:
                    error_text = await resp.text()
                    raise DeliveryError(
                        f"unexpected status code {status}: {error_text[:200]}",
                        status_code=status,
                    )

                try:
                    body = await resp.json(content_type=None)
                    remote_id = body.get("messageId")
                    return DeliveryReceipt(
                        message=str(body.get("message", "")),
                        message_id=str(remote_id) if remote_id is not None else None,
                        status_code=status,
                    )
                except (ValueError, AttributeError, aiohttp.ContentTypeError) as exc:
                    raise DeliveryError(
                        f"failed to decode response: {exc}", status_code=status,
                    ) from exc

        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise DeliveryError(f"failed to send request: {exc}") from exc

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


def _parse_retry_after(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None
