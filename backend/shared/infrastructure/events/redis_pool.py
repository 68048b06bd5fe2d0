"""
Redis Connection Pool Management.

The engine is synchronous, so only a sync pool is kept. It is created
lazily on first use; a service that never publishes never connects.
"""

from __future__ import annotations

import threading

import redis

from shared.config.settings import settings, REDIS_URL
from shared.config.logging import get_logger

logger = get_logger(__name__)

_redis_sync_pool: redis.ConnectionPool | None = None
_sync_pool_lock = threading.Lock()


def get_redis_sync_pool() -> redis.ConnectionPool:
    """Get or create the shared sync connection pool."""
    global _redis_sync_pool
    if _redis_sync_pool is None:
        with _sync_pool_lock:
            if _redis_sync_pool is None:
                _redis_sync_pool = redis.ConnectionPool.from_url(
                    REDIS_URL,
                    max_connections=settings.redis_pool_max_connections,
                    decode_responses=True,
                    socket_connect_timeout=settings.redis_socket_timeout,
                    socket_timeout=settings.redis_socket_timeout,
                    health_check_interval=30,
                )
                logger.info(
                    "Redis sync pool initialized",
                    max_connections=settings.redis_pool_max_connections,
                    timeout=settings.redis_socket_timeout,
                )
    return _redis_sync_pool


def get_redis_sync_client() -> redis.Redis:
    """Get a Redis client backed by the shared pool."""
    return redis.Redis(connection_pool=get_redis_sync_pool())


def check_redis_health() -> dict[str, str]:
    """Ping Redis. Used by the health endpoint and the CLI."""
    try:
        get_redis_sync_client().ping()
    except redis.RedisError as e:
        logger.warning("Redis health check failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy"}


def close_redis_sync_pool() -> None:
    """Close the sync pool on application shutdown."""
    global _redis_sync_pool
    with _sync_pool_lock:
        if _redis_sync_pool is not None:
            try:
                _redis_sync_pool.disconnect()
                logger.info("Redis sync pool closed")
            except redis.RedisError as e:
                logger.warning("Error closing Redis sync pool", error=str(e))
            finally:
                _redis_sync_pool = None
