"""Redis client management for the person registry.

This module provides singleton Redis clients shared by the nickname
reservation set and the person cache.

Flow Diagram: Redis Operations
=============================
::
    ┌─────────────┐
    │  Application│
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ get_redis()  │
    │ dependency  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check global │
    │ client var   │
    └──────┬──────┘
    EXISTS?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Redis   │  │ existing│
│ client  │  │ client  │
└─────────┘  └─────────┘

Key Behaviours
===============
- Redis clients are created lazily on first access.
- Every socket operation is bounded by REDIS_SOCKET_TIMEOUT_SECONDS, so a
  stalled Redis surfaces as a TimeoutError instead of hanging the request.
- UTF-8 encoding with decode_responses for string operations.

Functions:
    create_redis_client():  Build a client with the configured timeouts.
    get_redis():  Primary client (SADD reservations, cache SET).
    get_redis_read():  Replica client (cache GET), falls back to primary.
    close_redis():  Cleanup function for shutdown.
"""

import redis.asyncio as redis

from person_registry.config import get_settings

__all__ = ["close_redis", "create_redis_client", "get_redis", "get_redis_read"]

settings = get_settings()

# Write client: always points to the Redis primary.
# Used for: SADD/SREM on the nickname set and SET on the person cache.
redis_client: redis.Redis | None = None

# Read-only client: points to the Redis replica when one is configured.
# Used for: GET lookups in the get-by-id hot path.
redis_read_client: redis.Redis | None = None


def create_redis_client(url: str) -> redis.Redis:
    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
    )


async def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        redis_client = create_redis_client(settings.REDIS_URL)
    return redis_client


async def get_redis_read() -> redis.Redis:
    """Return a read-only Redis client pointed at the replica.

    Reservations must never go to a replica; only cache reads use this client.
    """
    global redis_read_client
    if redis_read_client is None:
        replica_url = settings.REDIS_REPLICA_URL or settings.REDIS_URL
        redis_read_client = create_redis_client(replica_url)
    return redis_read_client


async def close_redis() -> None:
    global redis_client, redis_read_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
    if redis_read_client is not None:
        await redis_read_client.aclose()
        redis_read_client = None
