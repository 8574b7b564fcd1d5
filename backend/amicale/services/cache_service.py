"""
Redis caching for read-heavy activity views.

Two namespaces, both JSON values with a TTL:

  events:list:page={page}&size={size}&upcoming={upcoming}
      Paginated event listings. Dropped wholesale (SCAN on the prefix) when an
      event is created or a booking is created or deleted, since both move
      current_participants.

  houses:availability:{house_id}
      The house's blocked calendar days. Dropped whenever the calendar for
      that house changes (confirmation effects, period moves, deletions).

Admission never reads from here; capacity and overlap decisions always hit
the database. Every operation degrades to a miss when Redis is unavailable.
"""

import json
from typing import Any, Optional

from amicale.core.config import get_settings
from amicale.core.logging import get_logger
from amicale.core.metrics import record_cache_operation
from amicale.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()


class JsonCache:
    """A key prefix in Redis holding JSON documents."""

    def __init__(self, prefix: str):
        self.prefix = prefix

    def key(self, suffix: Any) -> str:
        return f"{self.prefix}{suffix}"

    async def get(self, suffix: Any) -> Optional[Any]:
        client = await get_redis()
        if client is None:
            return None

        key = self.key(suffix)
        try:
            raw = await client.get(key)
        except Exception as e:
            logger.error("cache_get_error", key=key, error=str(e))
            return None

        record_cache_operation("get", hit=raw is not None)
        return json.loads(raw) if raw else None

    async def set(self, suffix: Any, value: Any, ttl: Optional[int] = None) -> None:
        client = await get_redis()
        if client is None:
            return

        key = self.key(suffix)
        try:
            await client.setex(key, ttl or settings.REDIS_CACHE_TTL, json.dumps(value, default=str))
            record_cache_operation("set", hit=False)
        except Exception as e:
            logger.error("cache_set_error", key=key, error=str(e))

    async def delete(self, suffix: Any) -> None:
        client = await get_redis()
        if client is None:
            return

        try:
            await client.delete(self.key(suffix))
        except Exception as e:
            logger.error("cache_invalidation_error", key=self.key(suffix), error=str(e))

    async def clear(self) -> int:
        """Drop every key under the prefix. Returns how many were removed."""
        client = await get_redis()
        if client is None:
            return 0

        removed = 0
        try:
            async for key in client.scan_iter(match=f"{self.prefix}*", count=100):
                removed += await client.delete(key)
        except Exception as e:
            logger.error("cache_invalidation_error", prefix=self.prefix, error=str(e))
        else:
            logger.info("cache_invalidated", prefix=self.prefix, keys_deleted=removed)
        return removed


event_lists = JsonCache("events:list:")
house_availability = JsonCache("houses:availability:")


def _listing(page: int, page_size: int, upcoming_only: bool) -> str:
    return f"page={page}&size={page_size}&upcoming={upcoming_only}"


async def get_cached_events(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    return await event_lists.get(_listing(page, page_size, upcoming_only))


async def set_cached_events(page: int, page_size: int, upcoming_only: bool, data: dict) -> None:
    await event_lists.set(_listing(page, page_size, upcoming_only), data)


async def invalidate_event_cache() -> None:
    await event_lists.clear()


async def get_cached_house_availability(house_id: int) -> Optional[list[str]]:
    return await house_availability.get(house_id)


async def set_cached_house_availability(house_id: int, days: list[str]) -> None:
    await house_availability.set(house_id, days)


async def invalidate_house_availability(house_id: int) -> None:
    await house_availability.delete(house_id)


async def get_cache_stats() -> dict:
    """Redis keyspace hit ratio, for /health."""
    client = await get_redis()
    if client is None:
        return {"status": "disabled"}

    try:
        stats = await client.info("stats")
    except Exception as e:
        return {"status": "error", "error": str(e)}

    hits = stats.get("keyspace_hits", 0)
    misses = stats.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
