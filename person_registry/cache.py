"""Read-through cache of serialized people, keyed by identifier.

Entries are written once per person and never expire: people are immutable
after creation, so a cached entry cannot go stale. The cache has no eviction
policy; the keyspace grows with the table.

Every Redis failure is raised as CacheError. Callers are expected to treat
the cache as best-effort and fall back to the store.
"""

import uuid
from typing import Optional

import redis.asyncio as redis
from prometheus_client import Counter
from redis.exceptions import RedisError

from person_registry.exceptions import CacheError

__all__ = ["PersonCache"]

REDIS_OPERATIONS_TOTAL = Counter(
    "person_registry_redis_cache_operations_total",
    "Total Redis operations on the person cache",
    ["operation"],
)


class PersonCache:
    def __init__(
        self,
        writer: redis.Redis,
        reader: Optional[redis.Redis] = None,
        key_prefix: str = "pessoa:",
    ) -> None:
        self._writer = writer
        self._reader = reader or writer
        self._key_prefix = key_prefix

    def key_for(self, person_id: uuid.UUID) -> str:
        return f"{self._key_prefix}{person_id}"

    async def put(self, person_id: uuid.UUID, payload: str) -> None:
        try:
            await self._writer.set(self.key_for(person_id), payload)
        except (RedisError, OSError, TimeoutError) as exc:
            raise CacheError("Failed to cache person", {"id": str(person_id), "error": repr(exc)}) from exc
        REDIS_OPERATIONS_TOTAL.labels(operation="set").inc()

    async def get_by_id(self, person_id: uuid.UUID) -> Optional[str]:
        try:
            cached = await self._reader.get(self.key_for(person_id))
        except (RedisError, OSError, TimeoutError) as exc:
            raise CacheError("Failed to read cached person", {"id": str(person_id), "error": repr(exc)}) from exc
        REDIS_OPERATIONS_TOTAL.labels(operation="get").inc()
        return cached
