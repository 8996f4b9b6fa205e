"""Key-value cache port used for delivery dedup and the sent-messages snapshot."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Protocol

logger = logging.getLogger(__name__)

MESSAGE_KEY_PREFIX = "message:"
MESSAGE_KEY_PATTERN = f"{MESSAGE_KEY_PREFIX}*"
SENT_MESSAGES_KEY = "messages:sent"
SCHEDULER_STATE_KEY = "scheduler:state"

MESSAGE_KEY_TTL = timedelta(hours=24)
SENT_MESSAGES_TTL = timedelta(minutes=10)


def message_key(message_id: int) -> str:
    return f"{MESSAGE_KEY_PREFIX}{message_id}"


class Cache(Protocol):
    async def exists(self, key: str) -> bool: ...

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def delete(self, *keys: str) -> int: ...

    async def list_keys(self, pattern: str) -> list[str]: ...


class NullCache:
    """Disabled cache: every operation is a no-op and reads miss."""

    async def exists(self, key: str) -> bool:
        return False

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> None:
        return None

    async def get(self, key: str) -> str | None:
        return None

    async def delete(self, *keys: str) -> int:
        return 0

    async def list_keys(self, pattern: str) -> list[str]:
        return []


class SoftFailCache:
    """Wraps a cache so backend errors degrade to the NullCache result.

    The wrapped backend is an optimisation layer; a failing call is logged as a
    warning and the caller proceeds as if the cache were empty.
    """

    def __init__(self, inner: Cache) -> None:
        self._inner = inner

    async def exists(self, key: str) -> bool:
        try:
            return await self._inner.exists(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache exists(%s) failed, treating as miss: %s", key, exc)
            return False

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> None:
        try:
            await self._inner.set(key, value, ttl)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache set(%s) failed, skipping: %s", key, exc)

    async def get(self, key: str) -> str | None:
        try:
            return await self._inner.get(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache get(%s) failed, treating as miss: %s", key, exc)
            return None

    async def delete(self, *keys: str) -> int:
        try:
            return await self._inner.delete(*keys)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache delete of %d keys failed: %s", len(keys), exc)
            return 0

    async def list_keys(self, pattern: str) -> list[str]:
        try:
            return await self._inner.list_keys(pattern)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache list_keys(%s) failed: %s", pattern, exc)
            return []


def soft_fail(cache: Cache | None) -> Cache:
    """Return a cache that never raises: NullCache for None, otherwise wrapped."""
    if cache is None:
        return NullCache()
    if isinstance(cache, (NullCache, SoftFailCache)):
        return cache
    return SoftFailCache(cache)
