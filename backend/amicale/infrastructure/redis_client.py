"""
Shared async Redis client for the cache and the admission gate.

Redis is advisory everywhere in this service: when it is disabled or
unreachable `get_redis()` returns None and callers fall back to the database.
After a failed connect, further attempts are skipped for RETRY_AFTER seconds
so a Redis outage does not add a connect timeout to every request.
"""

import time
from typing import Optional

import redis.asyncio as redis

from amicale.core.config import get_settings
from amicale.core.logging import get_logger
from amicale.core.metrics import redis_circuit_breaker_open, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

RETRY_AFTER = 30.0


class RedisClient:
    """Process-wide Redis connection, pooled by redis-py."""

    _instance: Optional[redis.Redis] = None
    _open_until: float = 0.0

    @classmethod
    async def connect(cls) -> Optional[redis.Redis]:
        if time.monotonic() < cls._open_until:
            return None

        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await client.ping()
        except Exception as e:
            await client.aclose()
            cls._open_until = time.monotonic() + RETRY_AFTER
            redis_connection_errors.inc()
            redis_circuit_breaker_open.set(1)
            logger.error("redis_connection_failed", error=str(e), retry_in=RETRY_AFTER)
            return None

        redis_circuit_breaker_open.set(0)
        logger.info("redis_connected", url=settings.REDIS_URL)
        cls._instance = client
        return client

    @classmethod
    async def get_client(cls) -> Optional[redis.Redis]:
        if not settings.REDIS_ENABLED:
            return None
        return cls._instance or await cls.connect()

    @classmethod
    async def close(cls) -> None:
        if cls._instance is not None:
            await cls._instance.aclose()
        cls._instance = None
        cls._open_until = 0.0


async def get_redis() -> Optional[redis.Redis]:
    return await RedisClient.get_client()


async def close_redis() -> None:
    await RedisClient.close()
