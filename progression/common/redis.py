"""
Redis Client Utility Module

This module provides a singleton asyncio Redis client for the components
that publish facts on pub/sub channels.
"""

import logging
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from progression.config import get_settings

# Setup logging
logger = logging.getLogger(__name__)

# Singleton Redis client instance
_redis_client: Optional[Redis] = None


def get_redis_client() -> Redis:
    """
    Get a Redis client instance.

    Returns the singleton client, creating it from REDIS_URL if it doesn't
    exist. Connections are opened lazily on the first command.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        url = get_settings().REDIS_URL
        _redis_client = Redis.from_url(url, decode_responses=True)
        logger.info(f"Redis client created for {url}")

    return _redis_client


async def reset_redis_client() -> None:
    """
    Reset the Redis client.

    This forces a new connection on the next call to get_redis_client().
    """
    global _redis_client

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except RedisError as e:
            logger.error(f"Error closing Redis connection: {e}")

        _redis_client = None
        logger.info("Redis client reset")
