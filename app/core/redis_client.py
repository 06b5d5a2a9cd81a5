import redis.asyncio as redis
from typing import Optional
import logging
import time

from app.core.config import settings

logger = logging.getLogger(__name__)

# Seconds to wait after a failed connection before trying again
RECONNECT_BACKOFF = 30

# Global Redis client instance
_redis_client: Optional[redis.Redis] = None
_last_failure: Optional[float] = None


async def get_redis_client() -> Optional[redis.Redis]:
    """
    Get Redis client instance.

    After a failed connection attempt, callers get None without a new
    attempt until ``RECONNECT_BACKOFF`` seconds have passed.

    Returns:
        Optional[redis.Redis]: Redis client or None if disabled or unreachable
    """
    global _redis_client, _last_failure

    if not settings.redis_enabled:
        return None

    if _redis_client is None:
        if _last_failure is not None and time.monotonic() - _last_failure < RECONNECT_BACKOFF:
            return None

        try:
            client = redis.from_url(
                settings.redis_url,
                password=settings.redis_password,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )
            await client.ping()
            _redis_client = client
            _last_failure = None
            logger.info("Redis client connected successfully")

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            _redis_client = None
            _last_failure = time.monotonic()

    return _redis_client


async def close_redis_client():
    """Close Redis client connection."""
    global _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis client connection closed")


async def increment_counter(key: str, expire: int = 3600) -> Optional[int]:
    """
    Increment a fixed-window counter in Redis.

    The expiry is attached when the counter is created, so the window
    starts at the first hit rather than sliding with every increment.

    Args:
        key: Counter key
        expire: Window length in seconds

    Returns:
        Optional[int]: New counter value or None if Redis is unavailable
    """
    try:
        client = await get_redis_client()
        if client:
            count = await client.incr(key)
            if count == 1:
                await client.expire(key, expire)
            return count
        return None
    except Exception as e:
        logger.error(f"Failed to increment counter {key}: {e}")
        return None


async def get_counter(key: str) -> Optional[int]:
    """Read a counter without touching it."""
    try:
        client = await get_redis_client()
        if client:
            value = await client.get(key)
            return int(value) if value is not None else 0
        return None
    except Exception as e:
        logger.error(f"Failed to read counter {key}: {e}")
        return None


async def get_ttl(key: str) -> Optional[int]:
    try:
        client = await get_redis_client()
        if client:
            return await client.ttl(key)
        return None
    except Exception as e:
        logger.error(f"Failed to read TTL for {key}: {e}")
        return None


async def delete_key(key: str) -> bool:
    """
    Delete a key from Redis.

    Args:
        key: Redis key

    Returns:
        bool: True if deleted successfully, False otherwise
    """
    try:
        client = await get_redis_client()
        if client:
            await client.delete(key)
            return True
        return False
    except Exception as e:
        logger.error(f"Failed to delete key {key}: {e}")
        return False
