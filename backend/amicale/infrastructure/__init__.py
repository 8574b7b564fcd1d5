"""
Connections to systems outside the database.
"""

from .redis_client import RedisClient, close_redis, get_redis

__all__ = ["get_redis", "close_redis", "RedisClient"]
