"""Batch sender: one delivery cycle plus the manual single-send path.

Per message the protocol is dedup-check, deliver, mark sent, cache. The cache
entry for a message is written only after the store has recorded it as sent,
so the cache may lag behind the store but never claims a delivery the store
does not. A crash between the store update and the cache write leaves a
window in which the message is already sent but uncached; that is the
at-least-once tradeoff and is not closed here.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from dispatch_service.application.dto.delivery import CycleReport, DeliveryReceipt
from dispatch_service.application.exceptions import (
    AlreadySentError,
    DeliveryError,
    MessageFetchError,
    PersistenceError,
    RateLimitedError,
)
from dispatch_service.application.ports.cache import (
    MESSAGE_KEY_PATTERN,
    MESSAGE_KEY_TTL,
    SENT_MESSAGES_KEY,
    SENT_MESSAGES_TTL,
    Cache,
    message_key,
    soft_fail,
)
from dispatch_service.application.ports.clock import Clock, SystemClock
from dispatch_service.application.ports.delivery import DeliveryClient
from dispatch_service.application.repositories.message import MessageStore
from dispatch_service.domain.entities.message import Message
from dispatch_service.infrastructure.cache.serializer import (
    deserialize_messages,
    serialize_messages,
)

logger = logging.getLogger(__name__)


class MessageSender:
    def __init__(
        self,
        store: MessageStore,
        cache: Cache | None,
        client: DeliveryClient,
        clock: Clock | None = None,
        *,
        message_ttl: timedelta = MESSAGE_KEY_TTL,
        snapshot_ttl: timedelta = SENT_MESSAGES_TTL,
    ) -> None:
        self._store = store
        self._cache = soft_fail(cache)
        self._client = client
        self._clock = clock or SystemClock()
        self._message_ttl = message_ttl
        self._snapshot_ttl = snapshot_ttl

    async def send_messages(self, batch_size: int) -> CycleReport:
        """Run one delivery cycle over at most ``batch_size`` unsent messages.

        Only a failure to fetch the batch propagates; every per-message failure
        is logged and the loop moves on.
        """
        try:
            messages = await self._store.get_unsent_messages(batch_size)
        except MessageFetchError:
            raise
        except Exception as exc:
            raise MessageFetchError(f"failed to get unsent messages: {exc}") from exc

        report = CycleReport(fetched=len(messages))
        if not messages:
            return report

        seen: set[int] = set()
        for message in messages:
            if message.id in seen:
                logger.warning("Message %d appeared twice in one batch, skipping", message.id)
                report.skipped += 1
                continue
            seen.add(message.id)
            await self._process(message, report)

        if report.delivered:
            try:
                await self.refresh_sent_snapshot()
            except Exception:
                logger.exception("Failed to refresh sent messages snapshot")

        logger.info(
            "Cycle finished: fetched=%d delivered=%d skipped=%d failed=%d unpersisted=%d",
            report.fetched,
            report.delivered,
            report.skipped,
            report.failed,
            report.unpersisted,
        )
        return report

    async def _process(self, message: Message, report: CycleReport) -> None:
        key = message_key(message.id)
        if await self._cache.exists(key):
            logger.info("Message %d already delivered (cache hit), skipping", message.id)
            report.skipped += 1
            return

        try:
            receipt = await self._client.deliver(message)
        except RateLimitedError as exc:
            logger.warning("Message %d rate limited, leaving unsent: %s", message.id, exc.detail)
            report.failed += 1
            return
        except DeliveryError as exc:
            logger.error("Failed to send message %d: %s", message.id, exc.detail)
            report.failed += 1
            return

        try:
            await self._store.update_message_sent(message.id, receipt.message_id)
        except Exception as exc:
            logger.error(
                "Message %d delivered but status update failed, not caching: %s",
                message.id,
                exc,
            )
            report.unpersisted += 1
            return

        await self._mark_cached(message.id)
        report.delivered += 1

    async def send_message(self, message: Message) -> DeliveryReceipt:
        """Deliver a single message outside the scheduled cycle.

        Errors propagate to the caller: AlreadySentError when the message is
        already recorded or cached as sent, DeliveryError / RateLimitedError from the endpoint and
        PersistenceError when the sent status could not be recorded.
        """
        if message.sent or await self._cache.exists(message_key(message.id)):
            raise AlreadySentError(f"Message {message.id} was already sent")

        receipt = await self._client.deliver(message)

        try:
            await self._store.update_message_sent(message.id, receipt.message_id)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(
                f"failed to update message {message.id} status: {exc}"
            ) from exc

        await self._mark_cached(message.id)
        try:
            await self.refresh_sent_snapshot()
        except Exception:
            logger.exception("Failed to refresh sent messages snapshot")
        return receipt

    async def _mark_cached(self, message_id: int) -> None:
        timestamp = self._clock.now().isoformat()
        await self._cache.set(message_key(message_id), timestamp, self._message_ttl)

    async def refresh_sent_snapshot(self) -> list[Message]:
        messages = await self._store.get_sent_messages()
        await self._cache.set(SENT_MESSAGES_KEY, serialize_messages(messages), self._snapshot_ttl)
        return messages

    async def get_sent_messages(self) -> list[Message]:
        """Serve the cached snapshot, rebuilding it from the store on a miss."""
        raw = await self._cache.get(SENT_MESSAGES_KEY)
        if raw is not None:
            try:
                return deserialize_messages(raw)
            except ValueError as exc:
                logger.warning("Discarding unreadable sent messages snapshot: %s", exc)
        return await self.refresh_sent_snapshot()

    async def clear_message_cache(self) -> int:
        """Delete every per-message dedup entry. The snapshot entry is kept."""
        keys = [k for k in await self._cache.list_keys(MESSAGE_KEY_PATTERN) if k != SENT_MESSAGES_KEY]
        if not keys:
            return 0
        deleted = await self._cache.delete(*keys)
        logger.info("Cleared %d message cache entries", deleted)
        return deleted
