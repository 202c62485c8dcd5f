"""Read-through cache for content blobs.

Content addresses are pure functions of the content, so an entry can
never go stale: the only invalidation needed is the TTL that bounds
memory use.  That makes this the one place in the service where caching
is free of consistency risk, and it sits in front of the content store
gateway, which is the slowest hop on the verification path.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from credential_service.db.redis import redis_pool

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL."""
        ...


class InMemoryCacheService:
    """Process-local cache for dev and tests; TTL is not enforced.

    The autouse fixture in conftest.py clears the store between tests.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value


class RedisCacheService:
    """Redis-backed cache shared across API instances.

    A Redis outage degrades to cache misses; it never fails the read or
    write the cache sits in front of.
    """

    # Prefix keeps cache keys apart from anything else sharing the Redis db.
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(f"{self._PREFIX}{key}")
        except RedisError as e:
            logger.warning("Cache get failed, treating as miss: %s", type(e).__name__)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)
        except RedisError as e:
            logger.warning("Cache set skipped: %s", type(e).__name__)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
