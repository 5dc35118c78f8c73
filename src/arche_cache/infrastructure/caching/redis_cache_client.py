# src/arche_cache/infrastructure/caching/redis_cache_client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Redis Cache Client (adapter).

Synopsis:
    Implements the application `CacheClient` Protocol on top of the shared
    redis.asyncio client from `infrastructure/caching/redis_client.py`.

Design:
    * Values are passed through as text; JSON handling belongs to the facade.
    * Optional namespace prefix: ``{namespace}:{key}``. Multi-get results are
      keyed by the caller's unprefixed keys.
    * Redis errors are translated at this boundary into the cache error
      taxonomy. Connection resets and timeouts are additionally logged as
      ``cache.server.issue`` warnings; nothing is retried here.
    * `connect()` is the hard-failure gate: an unreachable server raises
      `CacheServerDownError`, which callers treat as fatal.

Layer:
    infrastructure/caching
"""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from typing import Any

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from arche_cache.application.interfaces.cache_client import CacheClient
from arche_cache.domain.exceptions.base import CacheError
from arche_cache.domain.exceptions.cache import (
    CacheDeleteError,
    CacheFlushError,
    CacheReadError,
    CacheServerDownError,
    CacheWriteError,
)
from arche_cache.infrastructure.caching import redis_client as redis_client_module
from arche_cache.infrastructure.caching.redis_client import RedisClient
from arche_cache.infrastructure.logging.logger import get_json_logger

__all__ = ["RedisCacheClient"]

logger = get_json_logger(__name__)


class RedisCacheClient(CacheClient):
    """Redis-backed implementation of the CacheClient Protocol."""

    def __init__(self, *, namespace: str = "", redis: RedisClient | None = None) -> None:
        """Initialize the adapter.

        Args:
            namespace: Prefix applied to all keys to avoid collisions.
            redis: Explicit client; defaults to the shared module-level client.
        """
        self._ns = namespace.strip(":")
        self._explicit = redis

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _redis(self) -> RedisClient:
        if self._explicit is not None:
            return self._explicit
        return redis_client_module.get_redis_client()

    def _k(self, key: str) -> str:
        """Build a namespaced key."""
        if not self._ns:
            return key
        return f"{self._ns}:{key}"

    async def _guard(
        self,
        operation: str,
        error_cls: type[CacheError],
        key: str | None,
        call: Awaitable[Any],
    ) -> Any:
        """Await ``call`` and translate Redis failures into ``error_cls``."""
        try:
            return await call
        except (RedisConnectionError, RedisTimeoutError) as exc:
            logger.warning(
                "cache.server.issue",
                extra={"extra": {"operation": operation, "key": key, "error": str(exc)}},
            )
            raise error_cls(
                f"{operation}: cache server issue: {exc}",
                details={"operation": operation, "key": key},
            ) from exc
        except RedisError as exc:
            raise error_cls(
                f"{operation}: {exc}",
                details={"operation": operation, "key": key},
            ) from exc

    # ------------------------------------------------------------------ #
    # CacheClient implementation
    # ------------------------------------------------------------------ #
    async def connect(self) -> None:
        """Ping the server; an unreachable server is fatal for this layer.

        Raises:
            CacheServerDownError: If the server cannot be reached.
        """
        try:
            await self._redis().ping()
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            logger.error("cache.server.down", extra={"extra": {"error": str(exc)}})
            raise CacheServerDownError(f"Cache server went down due to: {exc}") from exc
        logger.info("cache.server.connected", extra={"extra": {"namespace": self._ns}})

    async def add(self, key: str, value: Any, lifetime: int) -> bool:
        stored = await self._guard(
            "add",
            CacheWriteError,
            key,
            self._redis().set(self._k(key), value, ex=lifetime, nx=True),
        )
        if not stored:
            raise CacheWriteError(
                f"add: key already exists: {key}",
                details={"operation": "add", "key": key},
            )
        return True

    async def get(self, key: str) -> str | None:
        raw = await self._guard("get", CacheReadError, key, self._redis().get(self._k(key)))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    async def get_multi(self, keys: Sequence[str]) -> dict[str, str]:
        if not keys:
            return {}
        values = await self._guard(
            "get_multi",
            CacheReadError,
            None,
            self._redis().mget([self._k(k) for k in keys]),
        )
        found: dict[str, str] = {}
        for key, raw in zip(keys, values, strict=True):
            if raw is None:
                continue
            found[key] = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
        return found

    async def set(self, key: str, value: Any, lifetime: int) -> bool:
        result = await self._guard(
            "set", CacheWriteError, key, self._redis().set(self._k(key), value, ex=lifetime)
        )
        return bool(result)

    async def delete(self, key: str) -> bool:
        removed = await self._guard(
            "delete", CacheDeleteError, key, self._redis().delete(self._k(key))
        )
        return bool(removed)

    async def flush(self) -> bool:
        result = await self._guard("flush", CacheFlushError, None, self._redis().flushdb())
        return bool(result)

    async def close(self) -> None:
        if self._explicit is not None:
            await self._explicit.close()
            return
        await redis_client_module.close_redis()
