"""Redis cache utilities for the MeetsMatch discovery service.

The cache is fail-open: when Redis is not configured or unreachable every
operation degrades to a miss and the caller falls back to the database.
"""

from typing import Any, Optional

import redis
import sentry_sdk

from discovery.config import settings
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """
    Singleton class for Redis client.

    Manages the Redis connection pool and provides a unified access point
    for caching operations.
    """

    _instance: Optional[redis.Redis] = None
    _failed: bool = False

    @classmethod
    def get_client(cls) -> Optional[redis.Redis]:
        """
        Get or create a Redis client instance.

        Returns:
            Optional[redis.Redis]: Redis client instance or None if caching is disabled.
        """
        if cls._failed:
            return None

        if cls._instance is None:
            if not settings.REDIS_URL:
                logger.info("REDIS_URL is not configured, feed caching disabled")
                cls._failed = True
                return None
            try:
                pool = redis.ConnectionPool.from_url(
                    settings.REDIS_URL,
                    max_connections=10,
                    decode_responses=True,
                )
                cls._instance = redis.Redis(connection_pool=pool)
                logger.info("Redis client initialized")
            except Exception as e:
                logger.warning("Failed to initialize Redis client, caching will be disabled", error=str(e))
                cls._failed = True
                return None
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None
        cls._failed = False


def set_cache(key: str, value: str, expiration: int = 3600) -> None:
    """
    Set a string value in the Redis cache.

    Args:
        key (str): Cache key.
        value (str): Value to cache.
        expiration (int): Expiration time in seconds, forced to one hour when not positive.
    """
    with sentry_sdk.start_span(op="cache.set", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return

        if expiration <= 0:
            logger.warning("Cache set without expiration, forcing default 1h", key=key)
            expiration = 3600

        try:
            client.set(key, value, ex=expiration)
            span.set_data("status", "success")
        except Exception as e:
            logger.warning("Failed to set cache, continuing without cache", key=key, error=str(e))
            span.set_status("internal_error")


def get_cache(key: str) -> Optional[str]:
    """
    Get a string value from the Redis cache.

    Args:
        key (str): Cache key.

    Returns:
        Optional[str]: Cached value or None on a miss or when Redis is unavailable.
    """
    with sentry_sdk.start_span(op="cache.get", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return None

        try:
            value: Optional[str] = client.get(key)  # type: ignore
            span.set_data("status", "hit" if value else "miss")
            return value or None
        except Exception as e:
            logger.warning("Failed to get cache", key=key, error=str(e))
            span.set_status("internal_error")
            return None


def delete_pattern(pattern: str) -> int:
    """
    Delete all keys matching a glob pattern.

    Uses SCAN rather than KEYS so large keyspaces are not blocked.

    Args:
        pattern (str): Redis glob pattern (e.g. "feed:123:*").

    Returns:
        int: Number of keys deleted.
    """
    with sentry_sdk.start_span(op="cache.delete_pattern", name=pattern) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return 0

        count = 0
        try:
            cursor: Any = "0"
            while True:
                cursor, keys = client.scan(cursor=cursor, match=pattern, count=100)  # type: ignore
                if keys:
                    client.delete(*keys)
                    count += len(keys)
                if str(cursor) == "0":
                    break
            span.set_data("deleted_count", count)
            return count
        except Exception as e:
            logger.warning("Failed to delete pattern", pattern=pattern, error=str(e))
            span.set_status("internal_error")
            return count
