"""
Redis caching service for the public event listing.

CACHING STRATEGY
================

What we cache:
  - Anonymous event listing responses (filtered, paginated, JSON-serialized)
  - Cache key pattern: "events:list:<sorted urlencoded filters>"

Why only anonymous listings:
  - They are the most frequent read and identical for every visitor
  - Organizer and admin listings include drafts and are per-caller

Invalidation strategy:
  - Any event change (create, update, publish, unpublish, cancel) and any
    capacity change (registration, cancellation, refund) deletes every
    "events:list:*" key, since remaining_spots is part of the response
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

Why NOT cache individual events:
  - Registration needs the live participant count
  - Event detail reads depend on the caller (drafts are owner-only)

Redis is optional: connection or command failures are logged and the
listing is served from the database.
"""

import json
from typing import Optional
from urllib.parse import urlencode

import redis.asyncio as redis
from onelastevent.core.config import get_settings
from onelastevent.core.metrics import record_cache_operation
from onelastevent.core.logging import get_logger

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
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_event_list_key(params: dict) -> str:
    """Same filters in any order map to the same key; unset filters are dropped."""
    normalized = sorted(
        (name, str(value)) for name, value in params.items() if value is not None
    )
    return EVENT_LIST_PREFIX + urlencode(normalized)


async def get_cached_events(params: dict) -> Optional[dict]:
    """Retrieve cached event list response."""
    client = await get_redis()
    if not client:
        return None

    key = make_event_list_key(params)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_events(params: dict, data: dict) -> None:
    """Cache event list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = make_event_list_key(params)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """
    Invalidate all cached event listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{EVENT_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
