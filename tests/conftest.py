"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import fnmatch
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

import pytest

from dispatch_service.application.dto.delivery import DeliveryReceipt
from dispatch_service.application.exceptions import (
    MessageFetchError,
    NotFoundError,
    PersistenceError,
)
from dispatch_service.domain.entities.message import Message

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_message(
    id: int = 1,
    *,
    content: str = "hello",
    recipient_phone: str = "+905551111111",
    sent: bool = False,
) -> Message:
    return Message(
        id=id,
        content=content,
        recipient_phone=recipient_phone,
        sent=sent,
        sent_at=FIXED_NOW if sent else None,
        message_id=f"remote-{id}" if sent else None,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
    )


class FixedClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now


@dataclass
class FakeMessageStore:
    """In-memory MessageStore for unit tests."""

    messages: dict[int, Message] = field(default_factory=dict)
    fail_fetch: bool = False
    fail_sent_query: bool = False
    fail_update_ids: set[int] = field(default_factory=set)
    updated: list[int] = field(default_factory=list)
    fetch_limits: list[int] = field(default_factory=list)
    sent_queries: int = 0

    def add(self, *messages: Message) -> None:
        for m in messages:
            self.messages[m.id] = m

    async def get_unsent_messages(self, limit: int) -> list[Message]:
        self.fetch_limits.append(limit)
        if self.fail_fetch:
            raise MessageFetchError("database unavailable")
        return [m for m in self.messages.values() if not m.sent][:limit]

    async def update_message_sent(self, id: int, message_id: str | None = None) -> None:
        if id in self.fail_update_ids:
            raise PersistenceError(f"update of {id} failed")
        if id not in self.messages:
            raise NotFoundError(f"Message {id} not found")
        self.messages[id] = replace(
            self.messages[id],
            sent=True,
            sent_at=FIXED_NOW,
            message_id=message_id,
            updated_at=FIXED_NOW,
        )
        self.updated.append(id)

    async def get_sent_messages(self) -> list[Message]:
        self.sent_queries += 1
        if self.fail_sent_query:
            raise PersistenceError("database unavailable")
        return [m for m in self.messages.values() if m.sent]

    async def get_message(self, id: int) -> Message | None:
        return self.messages.get(id)

    async def create_message(self, id: int, content: str, recipient_phone: str) -> Message:
        message = make_message(id, content=content, recipient_phone=recipient_phone)
        self.messages[id] = message
        return message


@dataclass
class FakeCache:
    """In-memory Cache; ``fail=True`` makes every call raise like a dead backend."""

    data: dict[str, str] = field(default_factory=dict)
    ttls: dict[str, timedelta | None] = field(default_factory=dict)
    set_calls: list[str] = field(default_factory=list)
    fail: bool = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("cache backend unavailable")

    async def exists(self, key: str) -> bool:
        self._check()
        return key in self.data

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> None:
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl
        self.set_calls.append(key)

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def delete(self, *keys: str) -> int:
        self._check()
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    async def list_keys(self, pattern: str) -> list[str]:
        self._check()
        return [k for k in self.data if fnmatch.fnmatchcase(k, pattern)]


@dataclass
class FakeDeliveryClient:
    """Records delivery attempts; ``errors`` maps message id to the exception to raise."""

    errors: dict[int, Exception] = field(default_factory=dict)
    calls: list[int] = field(default_factory=list)
    closed: bool = False
    omit_message_id: bool = False

    async def deliver(self, message: Message) -> DeliveryReceipt:
        self.calls.append(message.id)
        if message.id in self.errors:
            raise self.errors[message.id]
        remote_id = None if self.omit_message_id else f"remote-{message.id}"
        return DeliveryReceipt(message="Accepted", message_id=remote_id, status_code=202)

    async def close(self) -> None:
        self.closed = True


@dataclass
class RecordingBatchSender:
    """Stand-in for MessageSender in scheduler tests."""

    delay_s: float = 0.0
    error: Exception | None = None
    calls: list[int] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0
    release: asyncio.Event | None = None
    entered: asyncio.Event = field(default_factory=asyncio.Event)

    async def send_messages(self, batch_size: int) -> None:
        self.calls.append(batch_size)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.entered.set()
        try:
            if self.release is not None:
                await self.release.wait()
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            if self.error is not None:
                raise self.error
        finally:
            self.in_flight -= 1


async def wait_until(predicate, timeout: float = 1.0, step: float = 0.005) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(step)


@pytest.fixture
def store() -> FakeMessageStore:
    return FakeMessageStore()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def client() -> FakeDeliveryClient:
    return FakeDeliveryClient()
