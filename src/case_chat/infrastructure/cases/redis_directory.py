from __future__ import annotations

import redis.asyncio as aioredis


class RedisCaseDirectory:
    """Implements application.ports.cases.CaseDirectory on plain Redis keys.

    The case service announces ownership through ``case.created`` events;
    the consumer writes ``<prefix>:<case_id>:owner``.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str = "case") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, case_id: str) -> str:
        return f"{self._prefix}:{case_id}:owner"

    async def get_owner_id(self, case_id: str) -> str | None:
        value = await self._redis.get(self._key(case_id))
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else str(value)

    async def register_owner(self, case_id: str, owner_id: str) -> None:
        await self._redis.set(self._key(case_id), owner_id)
