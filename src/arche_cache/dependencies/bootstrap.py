# src/arche_cache/dependencies/bootstrap.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Bootstrap for the refreshing cache.

This module owns the lifecycle of the shared infrastructure behind a
`RefreshingCache`: it reads Settings, applies the verbose logging toggle,
initializes the Redis client, checks the server is reachable and tears
everything down on exit.

Public surface:
    * :func:`create_refreshing_cache` - build a facade (no I/O).
    * :func:`bootstrap` - async context manager yielding a connected facade.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from arche_cache.application.interfaces.cache_client import CacheClient
from arche_cache.config.settings import CacheSettings, get_settings
from arche_cache.infrastructure.caching import redis_client
from arche_cache.infrastructure.caching.redis_cache_client import RedisCacheClient
from arche_cache.infrastructure.caching.refreshing_cache import RefreshingCache
from arche_cache.infrastructure.logging.logger import (
    configure_root_logging,
    enable_verbose,
    get_json_logger,
)

__all__ = ["bootstrap", "create_refreshing_cache"]

logger = get_json_logger(__name__)


def create_refreshing_cache(
    settings: CacheSettings | None = None,
    *,
    client: CacheClient | None = None,
) -> RefreshingCache:
    """Build a `RefreshingCache` from settings.

    Args:
        settings: Cache settings; defaults to the process-wide singleton.
        client: Adapter override; defaults to a namespaced `RedisCacheClient`.

    Returns:
        RefreshingCache: Facade in the ``Disabled`` refresh state.
    """
    settings = settings or get_settings()
    if settings.verbose:
        enable_verbose()
    if client is None:
        client = RedisCacheClient(namespace=settings.namespace)
    return RefreshingCache.from_settings(client, settings)


@asynccontextmanager
async def bootstrap(
    settings: CacheSettings | None = None,
) -> AsyncGenerator[RefreshingCache, None]:
    """Configure logging, initialize Redis, connect, and yield a ready facade.

    Raises:
        CacheServerDownError: If the cache server is unreachable at startup.
    """
    settings = settings or get_settings()
    configure_root_logging(settings.log_level)
    logger.info("bootstrap.start", extra={"extra": {"settings": settings.redacted_dump()}})

    redis_client.init_redis(settings)
    cache = create_refreshing_cache(settings)
    try:
        await cache.client.connect()
        yield cache
    finally:
        try:
            await cache.close()
        except Exception:
            logger.exception("bootstrap.cache_close_failed")
        logger.info("bootstrap.stop")
