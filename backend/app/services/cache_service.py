"""
Redis caching service for organizer payment summaries.

CACHING STRATEGY
================

What we cache:
  - The per-event payment summary (booking rows + payment stats + revenue)
  - Cache key pattern: "payments:summary:{event_id}"

Why:
  - Organizers keep the payment dashboard open and poll it while verifying
  - The summary aggregates every booking of the event on each read

Invalidation strategy:
  - Any booking mutation on the event deletes its key (new booking,
    companions, proof upload, verify decision, withdrawal, companion toggle)
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

Redis is optional. Every call fails open: when Redis is disabled or down,
reads miss and writes are skipped, the database stays the source of truth.
Capacity counters are never cached (stale data = overbooking).
"""

import json
import uuid
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

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


def _make_summary_key(event_id: uuid.UUID) -> str:
    return f"payments:summary:{event_id}"


async def get_cached_summary(event_id: uuid.UUID) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_summary_key(event_id)
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


async def set_cached_summary(event_id: uuid.UUID, data: dict) -> None:
    """Cache a payment summary with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_summary_key(event_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_summary(event_id: uuid.UUID) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_summary_key(event_id)
    try:
        deleted = await client.delete(key)
        logger.info("cache_invalidated", key=key, keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


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
