"""
Process-wide Redis client.

Publishers (change feed, notifications, receipts) and the reconciliation
subscriber share one pooled `redis.asyncio.Redis`.
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)

_client: redis.Redis | None = None
_client_lock = asyncio.Lock()


def _connect() -> redis.Redis:
    pool = redis.ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_pool_max_connections,
        socket_connect_timeout=settings.redis_socket_timeout,
        socket_timeout=settings.redis_socket_timeout,
        health_check_interval=30,
        decode_responses=True,
    )
    logger.info("Redis pool created", max_connections=settings.redis_pool_max_connections)
    return redis.Redis(connection_pool=pool)


async def get_redis_pool() -> redis.Redis:
    """The shared client, created on first use."""
    global _client
    if _client is None:
        async with _client_lock:
            if _client is None:
                _client = _connect()
    return _client


async def ping_redis() -> bool:
    """Round trip to Redis; raises on connection errors."""
    client = await get_redis_pool()
    return bool(await client.ping())


async def close_redis_pool() -> None:
    """Release every pooled connection (application shutdown)."""
    global _client
    if _client is None:
        return
    client, _client = _client, None
    await client.aclose()
    await client.connection_pool.disconnect()
    logger.info("Redis pool closed")
