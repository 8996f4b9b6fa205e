"""Redis-backed implementation of application.ports.cache.Cache."""
from __future__ import annotations

from datetime import timedelta

import redis.asyncio as aioredis

from dispatch_service.application.ports.cache import Cache, soft_fail

SCAN_BATCH = 500


class RedisCache:
    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def exists(self, key: str) -> bool:
        return bool(await self._redis.exists(key))

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> None:
        await self._redis.set(key, value, ex=ttl)

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(key)
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._redis.delete(*keys))

    async def list_keys(self, pattern: str) -> list[str]:
        keys: list[str] = []
        async for key in self._redis.scan_iter(match=pattern, count=SCAN_BATCH):
            keys.append(key.decode() if isinstance(key, bytes) else key)
        return keys


def build_cache(redis: aioredis.Redis | None) -> Cache:
    """Soft-failing cache over ``redis``, or the disabled variant when None."""
    if redis is None:
        return soft_fail(None)
    return soft_fail(RedisCache(redis))
