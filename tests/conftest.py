# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable
from typing import Any

import fakeredis
import fakeredis.aioredis
import pytest

from arche_cache.infrastructure.caching import redis_client as redis_client_module
from arche_cache.infrastructure.caching.redis_cache_client import RedisCacheClient
from arche_cache.infrastructure.caching.refreshing_cache import RefreshingCache


@pytest.fixture
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> fakeredis.aioredis.FakeRedis:
    """Isolated fakeredis instance wired in as the shared Redis client."""
    fake = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    monkeypatch.setattr(redis_client_module, "_client", fake)
    return fake


@pytest.fixture
def make_cache(fake_redis: fakeredis.aioredis.FakeRedis) -> Callable[..., RefreshingCache]:
    """Factory building a RefreshingCache over the fake Redis server."""

    def _make(*, namespace: str = "", **options: Any) -> RefreshingCache:
        return RefreshingCache(RedisCacheClient(namespace=namespace), **options)

    return _make


@pytest.fixture
def cache(make_cache: Callable[..., RefreshingCache]) -> RefreshingCache:
    return make_cache()
