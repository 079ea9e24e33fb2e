"""
Redis connection pool shared by the nonce and session stores.
"""

from functools import lru_cache

import redis.asyncio as redis

from src.infra.config.settings import settings
from src.core.logger.logger import logger


def _redacted_url(url: str) -> str:
    """Host part of a redis URL, without credentials"""
    return url.rsplit("@", 1)[-1]


@lru_cache()
def get_redis_pool() -> redis.ConnectionPool:
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT
    )


async def get_redis() -> redis.Redis:
    """Client on the shared pool; fails fast when Redis is unreachable"""
    client = redis.Redis(connection_pool=get_redis_pool())
    try:
        await client.ping()
    except Exception as e:
        logger.error(
            "Redis unavailable",
            extra={"redis_url": _redacted_url(settings.REDIS_URL), "error": str(e)}
        )
        raise
    return client


async def close_redis_pool() -> None:
    if get_redis_pool.cache_info().currsize:
        await get_redis_pool().disconnect()
        get_redis_pool.cache_clear()
        logger.info("Redis pool closed")
