"""Arche Cache: Redis caching facade with background refresh of hot keys.

Public API:
    RefreshingCache: Key/value facade (add/get/mget/set/mset/delete/flush).
    read_through: Get-or-load helper.
    PlainValue, ValueWithOverride: ``mset`` entry variants.
    RefreshSubscription, RefreshCallback: Background refresh registration.
    RedisCacheClient: Redis adapter implementing ``CacheClient``.
    CacheSettings, get_settings: Configuration.
    bootstrap, create_refreshing_cache: Lifecycle helpers.
"""

from __future__ import annotations

from arche_cache.application.interfaces.cache_client import CacheClient
from arche_cache.config.settings import CacheSettings, get_settings
from arche_cache.dependencies.bootstrap import bootstrap, create_refreshing_cache
from arche_cache.domain.entities.refresh_subscription import (
    RefreshCallback,
    RefreshSubscription,
)
from arche_cache.domain.exceptions.base import CacheError
from arche_cache.domain.exceptions.cache import (
    BackgroundRefreshIntervalError,
    CacheDeleteError,
    CacheFlushError,
    CacheReadError,
    CacheServerDownError,
    CacheWriteError,
    InvalidKeyTypeError,
    SerializationError,
)
from arche_cache.domain.value_objects.cache_values import PlainValue, ValueWithOverride
from arche_cache.infrastructure.caching.redis_cache_client import RedisCacheClient
from arche_cache.infrastructure.caching.refreshing_cache import RefreshingCache, read_through

__all__ = [
    "BackgroundRefreshIntervalError",
    "CacheClient",
    "CacheDeleteError",
    "CacheError",
    "CacheFlushError",
    "CacheReadError",
    "CacheServerDownError",
    "CacheSettings",
    "CacheWriteError",
    "InvalidKeyTypeError",
    "PlainValue",
    "RedisCacheClient",
    "RefreshCallback",
    "RefreshSubscription",
    "RefreshingCache",
    "SerializationError",
    "ValueWithOverride",
    "bootstrap",
    "create_refreshing_cache",
    "get_settings",
    "read_through",
]
