# tests/unit/infrastructure/caching/test_background_refresh.py
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from arche_cache.domain.exceptions.cache import BackgroundRefreshIntervalError
from arche_cache.infrastructure.caching.refreshing_cache import RefreshingCache


class _Clock:
    """Manually advanced epoch clock (seconds)."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


async def _eventually(read: Callable[[], Awaitable[Any]], expected: Any, timeout: float = 2.0) -> Any:
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        value = await read()
        if value == expected or asyncio.get_running_loop().time() >= deadline:
            return value
        await asyncio.sleep(0.01)


# --------------------------------------------------------------------------- #
# Live scheduler
# --------------------------------------------------------------------------- #
@pytest.mark.asyncio
async def test_refresh_resurrects_existing_key(make_cache) -> None:
    cache: RefreshingCache = make_cache(background_refresh_interval_ms=1)

    async def refresh(key: str) -> str:
        return "refreshValue"

    try:
        await cache.set("key", "value", lifetime=5)
        assert await cache.get("key") == "value"

        await cache.set("key", "value", lifetime=1, refresh=refresh)

        assert await _eventually(lambda: cache.get("key"), "refreshValue") == "refreshValue"
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_refresh_populates_vacant_key(make_cache) -> None:
    cache: RefreshingCache = make_cache(background_refresh_interval_ms=1)

    async def refresh(key: str) -> int:
        return 1

    try:
        await cache.set("vacant", None, lifetime=1, refresh=refresh)
        await cache.delete("vacant")

        assert await _eventually(lambda: cache.get("vacant"), 1) == 1
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_refresh_keeps_callbacks_per_key(make_cache) -> None:
    cache: RefreshingCache = make_cache(background_refresh_interval_ms=1)

    async def one(key: str) -> int:
        await asyncio.sleep(0.005)
        return 1

    async def two(key: str) -> int:
        return 2

    try:
        await cache.set("one", 0, lifetime=1, refresh=one)
        await cache.set("two", 0, lifetime=1, refresh=two)

        expected = {"one": 1, "two": 2}
        assert await _eventually(lambda: cache.mget(["one", "two"]), expected) == expected
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_refresh_writes_with_subscribed_lifetime(make_cache, fake_redis) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)

    async def refresh(key: str) -> str:
        return "fresh"

    try:
        await cache.set("key", "stale", lifetime=30, refresh=refresh)
        assert cache.scheduler.tick() == ["key"]
        await cache.scheduler.drain()

        assert await cache.get("key") == "fresh"
        assert 0 < await fake_redis.ttl("key") <= 30
        assert cache.registry.get("key").life_span == 30
    finally:
        await cache.scheduler.shutdown()


# --------------------------------------------------------------------------- #
# Enable / interval check
# --------------------------------------------------------------------------- #
@pytest.mark.asyncio
async def test_interval_above_min_ttl_is_rejected(make_cache) -> None:
    cache: RefreshingCache = make_cache(
        background_refresh_interval_ms=100,
        background_refresh_min_ttl_ms=50,
    )

    async def refresh(key: str) -> str:
        return "refreshValue"

    with pytest.raises(BackgroundRefreshIntervalError) as excinfo:
        await cache.set("key", "value", lifetime=1, refresh=refresh)

    assert excinfo.value.code == "BACKGROUND_REFRESH_INTERVAL_EXCEPTION"
    assert cache.scheduler.is_enabled is False
    assert "key" not in cache.registry

    with pytest.raises(BackgroundRefreshIntervalError):
        await cache.set("key", "value", lifetime=1, refresh=refresh)


@pytest.mark.asyncio
async def test_interval_check_can_be_disabled(make_cache) -> None:
    cache: RefreshingCache = make_cache(
        background_refresh_interval_ms=100,
        background_refresh_min_ttl_ms=50,
        background_refresh_interval_check=False,
    )

    async def refresh(key: str) -> str:
        return "refreshValue"

    try:
        await cache.set("key", "value", lifetime=1, refresh=refresh)
        assert cache.scheduler.is_enabled is True
        assert "key" in cache.registry
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_scheduler_enables_once(make_cache) -> None:
    cache: RefreshingCache = make_cache()

    async def refresh(key: str) -> str:
        return "v"

    try:
        assert cache.scheduler.is_enabled is False
        await cache.set("a", "v", refresh=refresh)
        assert cache.scheduler.is_enabled is True
        assert cache.scheduler.enable() is False
    finally:
        await cache.scheduler.shutdown()
    assert cache.scheduler.is_enabled is False


# --------------------------------------------------------------------------- #
# Deterministic ticks
# --------------------------------------------------------------------------- #
@pytest.mark.asyncio
async def test_subscription_expiration_follows_clock(make_cache) -> None:
    clock = _Clock(now=1_000.0)
    cache: RefreshingCache = make_cache(clock=clock)

    async def refresh(key: str) -> str:
        return "v"

    try:
        await cache.set("key", "v", lifetime=90, refresh=refresh)
        subscription = cache.registry.get("key")
        assert subscription is not None
        assert subscription.expires_at_ms == 1_000_000 + 90_000
        assert subscription.life_span == 90
        assert subscription.callback is refresh
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_tick_skips_keys_not_yet_due(make_cache) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)
    calls: list[str] = []

    async def refresh(key: str) -> str:
        calls.append(key)
        return "v"

    try:
        await cache.set("key", "v", lifetime=300, refresh=refresh)
        assert cache.scheduler.tick() == []

        clock.now += 231
        assert cache.scheduler.tick() == ["key"]
        await cache.scheduler.drain()
        assert calls == ["key"]
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_delete_keeps_subscription_so_refresh_repopulates(make_cache) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)

    async def refresh(key: str) -> str:
        return "back"

    try:
        await cache.set("key", "value", lifetime=1, refresh=refresh)
        await cache.delete("key")
        assert await cache.get("key") is None
        assert "key" in cache.registry

        assert cache.scheduler.tick() == ["key"]
        await cache.scheduler.drain()

        assert await cache.get("key") == "back"
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_unsubscribe_stops_refresh(make_cache) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)

    async def refresh(key: str) -> str:
        return "back"

    try:
        await cache.set("key", "value", lifetime=1, refresh=refresh)
        assert cache.unsubscribe("key") is True
        assert cache.unsubscribe("key") is False
        await cache.delete("key")

        assert cache.scheduler.tick() == []
        assert await cache.get("key") is None
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_failed_callback_leaves_subscription_untouched(make_cache) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)
    attempts: list[str] = []

    async def refresh(key: str) -> str:
        attempts.append(key)
        raise RuntimeError("upstream unavailable")

    try:
        await cache.set("key", "value", lifetime=1, refresh=refresh)
        before = cache.registry.get("key")

        cache.scheduler.tick()
        await cache.scheduler.drain()

        assert cache.registry.get("key") is before
        assert await cache.get("key") == "value"
        assert cache.scheduler.in_flight == frozenset()

        cache.scheduler.tick()
        await cache.scheduler.drain()
        assert attempts == ["key", "key"]
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_key_in_flight_is_not_refreshed_twice(make_cache) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)
    release = asyncio.Event()
    calls: list[str] = []

    async def refresh(key: str) -> str:
        calls.append(key)
        await release.wait()
        return "slow"

    try:
        await cache.set("key", "value", lifetime=1, refresh=refresh)

        assert cache.scheduler.tick() == ["key"]
        await asyncio.sleep(0)
        assert cache.scheduler.in_flight == frozenset({"key"})
        assert cache.scheduler.tick() == []

        release.set()
        await cache.scheduler.drain()

        assert calls == ["key"]
        assert cache.scheduler.in_flight == frozenset()
        assert await cache.get("key") == "slow"
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_flush_disables_refresh_and_clears_subscriptions(make_cache) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)

    async def refresh(key: str) -> str:
        return "back"

    try:
        await cache.set("a", 1, lifetime=1, refresh=refresh)
        await cache.set("b", 2, lifetime=1, refresh=refresh)
        assert cache.scheduler.is_enabled is True

        await cache.flush()

        assert cache.scheduler.is_enabled is False
        assert len(cache.registry) == 0
        assert cache.scheduler.tick() == []
        assert await cache.mget(["a", "b"]) == {"a": None, "b": None}
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_refresh_in_flight_during_flush_may_write_late(make_cache) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)
    release = asyncio.Event()

    async def refresh(key: str) -> str:
        await release.wait()
        return "late"

    try:
        await cache.set("key", "value", lifetime=1, refresh=refresh)
        cache.scheduler.tick()
        await asyncio.sleep(0)

        await cache.flush()
        release.set()
        await cache.scheduler.drain()

        assert await cache.get("key") == "late"
        assert cache.scheduler.is_enabled is True
        assert "key" in cache.registry
    finally:
        await cache.scheduler.shutdown()


@pytest.mark.asyncio
async def test_close_cancels_background_work(make_cache) -> None:
    clock = _Clock()
    cache: RefreshingCache = make_cache(clock=clock)
    release = asyncio.Event()

    async def refresh(key: str) -> str:
        await release.wait()
        return "never"

    await cache.set("key", "value", lifetime=1, refresh=refresh)
    cache.scheduler.tick()
    await asyncio.sleep(0)

    await cache.scheduler.shutdown()

    assert cache.scheduler.is_enabled is False
    assert cache.scheduler.in_flight == frozenset()
    assert await cache.get("key") == "value"
