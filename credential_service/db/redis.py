"""Redis connection management.

When REDIS_URL is configured a shared async connection pool is created
at import time; otherwise `redis_pool` is None and every consumer falls
back to its in-memory implementation, so local dev and tests need no
Redis server.

Redis only backs the content blob cache.  Nothing authoritative lives
there: the ledger is the source of truth for credential state and the
content store for payloads, so losing Redis costs latency, not data.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from credential_service.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis() -> AsyncGenerator[None, None]:
    """Verify connectivity on startup and release the pool on shutdown."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured; content cache is in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except Exception:
        logger.exception("Redis connection failed on startup")
        # Serve without the cache rather than refusing to start.
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
