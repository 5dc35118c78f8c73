# src/arche_cache/infrastructure/caching/redis_client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Async Redis client factory.

Design notes:
    * Provides a small Protocol (`RedisClient`) with the commands the cache
      adapter issues.
    * Uses redis.asyncio under the hood; its connection pool handles
      reconnects, so this module never retries.
    * Is **loop-aware**: if called from a different event loop than the one
      that created the client, it transparently creates a new client bound
      to the current loop.
    * Test suites may inject a fakeredis client by assigning to the module-level
      `_client`; when that happens we do not overwrite or close it.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, cast, runtime_checkable

import redis.asyncio as aioredis

if TYPE_CHECKING:
    from redis.asyncio.client import Redis as _RedisGeneric

    AioredisRedis: TypeAlias = _RedisGeneric[str]
else:
    from redis.asyncio.client import Redis as AioredisRedis  # type: ignore[assignment]

from arche_cache.config.settings import CacheSettings, get_settings

__all__ = [
    "RedisClient",
    "close_redis",
    "get_redis_client",
    "init_redis",
]

logger = logging.getLogger(__name__)


@runtime_checkable
class RedisClient(Protocol):
    """Protocol for the subset of Redis commands used by the cache adapter."""

    async def get(self, key: str) -> Any: ...
    async def mget(self, keys: Any, *args: str) -> Any: ...
    async def set(
        self,
        key: str,
        value: Any,
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool | None = None,
        xx: bool | None = None,
    ) -> Any: ...
    async def delete(self, *keys: str) -> Any: ...
    async def flushdb(self) -> Any: ...
    async def ping(self) -> Any: ...
    async def close(self) -> Any: ...


# Global client + loop identifier; a redis connection is never reused across loops.
_client: RedisClient | Any | None = None
_client_loop_id: int | None = None


def _current_loop_id() -> int | None:
    """Return the id() of the current running event loop, or None if absent."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return id(loop)


def _create_aioredis_client(settings: CacheSettings) -> AioredisRedis:
    """Build the concrete asyncio Redis client from settings.

    Args:
        settings: Cache settings carrying URL and socket tuning.

    Returns:
        AioredisRedis: Configured Redis client.
    """
    _from_url: Any = aioredis.from_url
    client = _from_url(
        url=settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=settings.redis_health_check_interval_s,
        socket_timeout=settings.redis_socket_timeout_s,
        socket_connect_timeout=settings.redis_socket_connect_timeout_s,
    )
    return cast(AioredisRedis, client)


def _is_fake_client(client: Any | None) -> bool:
    """Return True if the given client looks like a fakeredis instance."""
    if client is None:
        return False
    return type(client).__module__.startswith("fakeredis")


def init_redis(settings: CacheSettings) -> None:
    """Initialize the global async Redis client for the **current** event loop.

    Idempotent per loop. A test-injected fakeredis client is left in place.
    """
    global _client, _client_loop_id

    if _is_fake_client(_client):
        return

    loop_id = _current_loop_id()
    if _client is not None and _client_loop_id == loop_id:
        return

    logger.info(
        "cache.redis.init",
        extra={"extra": {"redis_url": settings.redacted_dump()["redis_url"]}},
    )
    _client = cast(RedisClient, _create_aioredis_client(settings))
    _client_loop_id = loop_id


async def close_redis() -> None:
    """Close the global Redis client (best-effort)."""
    global _client, _client_loop_id

    if _client is not None and not _is_fake_client(_client):
        loop_id = _current_loop_id()
        if _client_loop_id is None or loop_id == _client_loop_id:
            with suppress(RuntimeError, ConnectionError):
                await _client.close()

    _client = None
    _client_loop_id = None


def get_redis_client() -> RedisClient:
    """Return the initialized Redis client (loop-aware, lazy-init).

    Returns:
        RedisClient: Shared Redis client instance.

    Raises:
        RuntimeError: If client could not be initialized.
    """
    if _is_fake_client(_client):
        return cast(RedisClient, _client)

    loop_id = _current_loop_id()
    if _client is None or (
        _client_loop_id is not None and loop_id is not None and loop_id != _client_loop_id
    ):
        init_redis(get_settings())

    if _client is None:
        raise RuntimeError("Redis client not initialized (init_redis failed)")

    return cast(RedisClient, _client)
