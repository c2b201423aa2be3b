"""
Redis caching service for event listings.

CACHING STRATEGY
================

What we cache:
  - Event listing responses (paginated, JSON-serialized, with booked and
    available counts per event)
  - Cache key pattern: "events:list:page={page}&size={size}&upcoming={upcoming}"

Invalidation:
  - On event creation, booking creation and booking cancellation, every
    event list key is deleted (all of them start with "events:list:")
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

What we never cache:
  - Single events, capacity info, tickets, validation results. The booking
    path reads capacity inside its own locked transaction and would ignore a
    cached number anyway; the scanner must see check-ins immediately.

When Redis is disabled or unreachable every function here is a no-op and
listings come straight from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

EVENT_LIST_PREFIX = "events:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_event_list_key(page: int, page_size: int, upcoming_only: bool) -> str:
    return f"{EVENT_LIST_PREFIX}page={page}&size={page_size}&upcoming={upcoming_only}"


async def get_cached_events(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    """Retrieve cached event list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_event_list_key(page, page_size, upcoming_only)
    try:
        data = await client.get(key)
    except RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_events(
    page: int,
    page_size: int,
    upcoming_only: bool,
    data: dict,
) -> None:
    """Cache event list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_event_list_key(page, page_size, upcoming_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """Delete every cached event listing."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{EVENT_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
