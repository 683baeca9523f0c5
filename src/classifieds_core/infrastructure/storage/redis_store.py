"""Redis-backed key/value storage."""
from __future__ import annotations

from typing import Mapping

import redis.asyncio as aioredis


class RedisKeyValueStore:
    """Implements application.ports.storage.KeyValueStore.

    The client must be created with ``decode_responses=True``.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str = "") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        return await self._redis.get(self._key(key))

    async def get_many(self, keys: list[str]) -> list[str | None]:
        if not keys:
            return []
        return await self._redis.mget([self._key(k) for k in keys])

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(self._key(key), value)

    async def set_many(self, items: Mapping[str, str]) -> None:
        if items:
            await self._redis.mset({self._key(k): v for k, v in items.items()})

    async def delete(self, *keys: str) -> None:
        if keys:
            await self._redis.delete(*(self._key(k) for k in keys))
