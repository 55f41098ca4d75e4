"""
Redis caching service for route catalog listings.

CACHING STRATEGY
================

What we cache:
  - Route listing responses (paginated, JSON-serialized)
  - Cache key pattern: "routes:list:page={page}&limit={limit}"

Why:
  - Route listings back every search form and change only when an admin edits
    the catalog
  - Serving from Redis: ~1ms vs PostgreSQL: ~15-50ms

Invalidation strategy:
  - On route create/update/delete: delete all route list keys
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  All route list keys start with "routes:list:" so we can SCAN and delete them.

What we never cache:
  - Seat availability and schedule counters. The reservation path must see
    the live ledger; a stale "free" seat is the very thing it guards against.

Redis is optional: when disabled or unreachable every call falls through to
the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from shuttle.core.config import get_settings
from shuttle.core.logging import get_logger
from shuttle.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

ROUTE_LIST_PREFIX = "routes:list:"

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


def _make_route_list_key(page: int, limit: int) -> str:
    return f"{ROUTE_LIST_PREFIX}page={page}&limit={limit}"


async def get_cached_routes(page: int, limit: int) -> Optional[dict]:
    """Retrieve cached route list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_route_list_key(page, limit)
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


async def set_cached_routes(page: int, limit: int, data: dict) -> None:
    """Cache route list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_route_list_key(page, limit)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_route_cache() -> None:
    """Drop every cached route listing."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{ROUTE_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", prefix=ROUTE_LIST_PREFIX, keys_deleted=deleted)
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
