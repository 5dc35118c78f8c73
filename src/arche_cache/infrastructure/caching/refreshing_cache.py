# src/arche_cache/infrastructure/caching/refreshing_cache.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Refreshing Cache (facade).

Synopsis:
    Key/value operations over a `CacheClient` with background refresh of
    subscribed keys. Batch operations (mget/mset/delete of many keys) fan out
    into concurrent single-key operations; values cross the wire as JSON text.

Design:
    * ``set(key, value, lifetime=..., refresh=cb)`` stores the value and, on
      success, subscribes ``key``: the first subscription enables the
      background refresh scheduler, and each successful refresh re-enters
      this same path with the subscription's lifetime and callback.
    * Encoding and decoding failures are per-value and never fatal: they are
      logged as `SerializationError`; the raw text (decode) or str() of the
      value (encode) is used instead.
    * Batch writes/deletes raise the first error; sibling operations already
      started are not cancelled.
    * ``delete`` does not unsubscribe. A subscribed key that is deleted is
      written again by the next due refresh; call ``unsubscribe`` first to
      keep it gone.
    * ``flush`` disables the scheduler, drops every subscription and empties
      the server.

Layer:
    infrastructure/caching

See Also:
    - arche_cache.infrastructure.caching.refresh_scheduler
    - arche_cache.application.interfaces.cache_client.CacheClient
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable, Hashable, Mapping, Sequence
from typing import Any

from arche_cache.application.interfaces.cache_client import CacheClient
from arche_cache.config.settings import CacheSettings
from arche_cache.domain.entities.refresh_subscription import (
    RefreshCallback,
    RefreshSubscription,
)
from arche_cache.domain.exceptions.base import CacheError
from arche_cache.domain.exceptions.cache import InvalidKeyTypeError, SerializationError
from arche_cache.domain.value_objects.cache_values import BatchEntry, resolve_entry
from arche_cache.infrastructure.caching.refresh_registry import RefreshRegistry
from arche_cache.infrastructure.caching.refresh_scheduler import BackgroundRefreshScheduler
from arche_cache.infrastructure.logging.logger import get_json_logger
from arche_cache.infrastructure.observability.metrics import observe_cache_operation

__all__ = ["DEFAULT_LIFETIME_S", "RefreshingCache", "read_through"]

logger = get_json_logger(__name__)

#: Lifetime (seconds) used when neither the call nor the settings give one.
DEFAULT_LIFETIME_S = 90


class RefreshingCache:
    """Cache facade with background refresh of hot keys."""

    cache_type = "redis-cache-module"
    storage = "redis"

    def __init__(
        self,
        client: CacheClient,
        *,
        default_lifetime: int = DEFAULT_LIFETIME_S,
        background_refresh_interval_check: bool = True,
        background_refresh_interval_ms: int = 60_000,
        background_refresh_min_ttl_ms: int = 70_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the facade.

        Args:
            client: Adapter performing the server I/O.
            default_lifetime: Seconds applied when no lifetime is given.
            background_refresh_interval_check: Enforce interval <= min TTL.
            background_refresh_interval_ms: Scheduler tick period.
            background_refresh_min_ttl_ms: Near-expiry threshold.
            clock: Epoch seconds source shared with the scheduler.
        """
        self._client = client
        self._default_lifetime = default_lifetime or DEFAULT_LIFETIME_S
        self._clock = clock
        self._registry = RefreshRegistry()
        self._scheduler = BackgroundRefreshScheduler(
            self._registry,
            self._write_refreshed,
            interval_ms=background_refresh_interval_ms,
            min_ttl_ms=background_refresh_min_ttl_ms,
            interval_check=background_refresh_interval_check,
            clock=clock,
        )

    @classmethod
    def from_settings(cls, client: CacheClient, settings: CacheSettings) -> RefreshingCache:
        """Build a facade configured from `CacheSettings`."""
        return cls(
            client,
            default_lifetime=settings.default_lifetime,
            background_refresh_interval_check=settings.background_refresh_interval_check,
            background_refresh_interval_ms=settings.background_refresh_interval_ms,
            background_refresh_min_ttl_ms=settings.background_refresh_min_ttl_ms,
        )

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #
    @property
    def client(self) -> CacheClient:
        return self._client

    @property
    def registry(self) -> RefreshRegistry:
        return self._registry

    @property
    def scheduler(self) -> BackgroundRefreshScheduler:
        return self._scheduler

    @property
    def default_lifetime(self) -> int:
        return self._default_lifetime

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _lifetime(self, lifetime: int | None) -> int:
        return lifetime or self._default_lifetime

    def _encode(self, operation: str, key: str, value: Any) -> str | bytes:
        """JSON-encode ``value``; on failure log and fall back to its text form."""
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as exc:
            err = SerializationError(str(exc), details={"key": key, "operation": operation})
            logger.error(
                f"cache.{operation}.encode_failed",
                extra={"extra": {"key": key, "code": err.code, "error": str(err)}},
            )
            # Redis takes bytes as-is; anything else is stored as its str() text.
            if isinstance(value, bytes):
                return value
            return str(value)

    def _decode(self, operation: str, key: str, raw: str) -> Any:
        """JSON-decode ``raw``; on failure log and return the raw text."""
        try:
            return json.loads(raw)
        except ValueError as exc:
            err = SerializationError(str(exc), details={"key": key, "operation": operation})
            logger.error(
                f"cache.{operation}.decode_failed",
                extra={"extra": {"key": key, "code": err.code, "error": str(err)}},
            )
            return raw

    async def _store(self, operation: str, key: str, encoded: Any, lifetime: int) -> bool:
        logger.debug(
            f"cache.{operation}",
            extra={"extra": {"key": key, "lifetime": lifetime}},
        )
        try:
            result = await self._client.set(key, encoded, lifetime)
        except CacheError as exc:
            logger.error(
                f"cache.{operation}.failed",
                extra={"extra": {"key": key, "error": str(exc)}},
            )
            raise
        logger.debug(f"cache.{operation}.success", extra={"extra": {"key": key}})
        return result

    async def _write_refreshed(self, subscription: RefreshSubscription, value: Any) -> None:
        await self.set(
            subscription.key,
            value,
            lifetime=subscription.life_span,
            refresh=subscription.callback,
        )

    async def _delete_one(self, key: str) -> bool:
        try:
            return await self._client.delete(key)
        except CacheError as exc:
            logger.error("cache.delete.failed", extra={"extra": {"key": key, "error": str(exc)}})
            raise

    # ------------------------------------------------------------------ #
    # Subscriptions
    # ------------------------------------------------------------------ #
    def subscribe(
        self, key: str, callback: RefreshCallback, *, lifetime: int | None = None
    ) -> RefreshSubscription:
        """Register ``callback`` to keep ``key`` fresh; enables the scheduler.

        The subscription's expiration starts now, so call this right after the
        value was written (``set(..., refresh=cb)`` does exactly that).

        Raises:
            BackgroundRefreshIntervalError: If the scheduler refuses to enable.
        """
        self._scheduler.enable()
        subscription = RefreshSubscription.starting_at(
            key,
            now_ms=self._clock() * 1000,
            life_span=self._lifetime(lifetime),
            callback=callback,
        )
        self._registry.upsert(subscription)
        return subscription

    def unsubscribe(self, key: str) -> bool:
        """Stop refreshing ``key``; returns whether it was subscribed."""
        return self._registry.remove(key) is not None

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #
    async def add(self, key: str, value: Any, lifetime: int | None = None) -> bool:
        """Store ``value`` only if ``key`` is absent.

        Raises:
            CacheWriteError: If the key exists or the server is unreachable.
        """
        ttl = self._lifetime(lifetime)
        logger.debug("cache.add", extra={"extra": {"key": key, "lifetime": ttl}})
        with observe_cache_operation("add"):
            try:
                result = await self._client.add(key, self._encode("add", key, value), ttl)
            except CacheError as exc:
                logger.error("cache.add.failed", extra={"extra": {"key": key, "error": str(exc)}})
                raise
        logger.debug("cache.add.success", extra={"extra": {"key": key}})
        return result

    async def get(self, key: str) -> Any | None:
        """Return the value stored under ``key``.

        A miss, empty raw text, and a stored ``""`` or ``null`` all read as ``None``.
        Falsy values such as ``0``, ``False`` or ``[]`` are returned as stored.

        Raises:
            CacheReadError: If the server read fails.
        """
        logger.debug("cache.get", extra={"extra": {"key": key}})
        with observe_cache_operation("get") as obs:
            try:
                raw = await self._client.get(key)
            except CacheError as exc:
                logger.error("cache.get.failed", extra={"extra": {"key": key, "error": str(exc)}})
                raise
            value = self._decode("get", key, raw) if raw else None
            if value is None or value == "":
                obs.outcome = "miss"
                logger.debug("cache.get.miss", extra={"extra": {"key": key}})
                return None
            obs.outcome = "hit"
        logger.debug("cache.get.hit", extra={"extra": {"key": key}})
        return value

    async def mget(self, keys: Sequence[str]) -> dict[str, Any | None]:
        """Fetch many keys at once.

        Every requested key is present in the result; absent keys map to
        ``None``. A value that fails to decode is returned as raw text.

        Raises:
            CacheReadError: If the server read fails.
        """
        logger.debug("cache.mget", extra={"extra": {"keys": list(keys)}})
        with observe_cache_operation("mget"):
            found = await self._client.get_multi(keys)
        response: dict[str, Any | None] = {}
        for key in keys:
            raw = found.get(key)
            response[key] = None if raw is None else self._decode("mget", key, raw)
        return response

    async def mget_indexed(
        self, keys: Sequence[str], index: Hashable
    ) -> tuple[dict[str, Any | None], Hashable]:
        """``mget`` that hands ``index`` back unchanged, to correlate concurrent batches."""
        return await self.mget(keys), index

    async def set(
        self,
        key: str,
        value: Any,
        *,
        lifetime: int | None = None,
        refresh: RefreshCallback | None = None,
    ) -> bool:
        """Store ``value`` as JSON text.

        Args:
            key: Cache key.
            value: JSON-serializable value.
            lifetime: Seconds to live; falsy means the default lifetime.
            refresh: Optional coroutine function recomputing the value. When
                given, ``key`` is (re)subscribed for background refresh after
                a successful write.

        Raises:
            CacheWriteError: If the server write fails.
            BackgroundRefreshIntervalError: If refresh cannot be enabled.
        """
        ttl = self._lifetime(lifetime)
        with observe_cache_operation("set"):
            result = await self._store("set", key, self._encode("set", key, value), ttl)
        if refresh is not None:
            self.subscribe(key, refresh, lifetime=ttl)
        return result

    async def mset(
        self, entries: Mapping[str, BatchEntry | Any], lifetime: int | None = None
    ) -> list[bool]:
        """Store many entries concurrently.

        Each entry may be a bare value, a ``PlainValue`` or a
        ``ValueWithOverride`` carrying its own lifetime. Lifetime precedence:
        entry override, then ``lifetime``, then the default.

        Returns:
            list[bool]: Per-entry results in mapping order.

        Raises:
            CacheWriteError: The first failed write; other writes keep running.
        """
        batch_lifetime = self._lifetime(lifetime)
        writes = []
        for key, entry in entries.items():
            value, ttl = resolve_entry(entry, batch_lifetime)
            writes.append(self._store("mset", key, self._encode("mset", key, value), ttl))
        with observe_cache_operation("mset"):
            return list(await asyncio.gather(*writes))

    async def delete(self, key: str | Sequence[str]) -> bool | list[bool]:
        """Delete one key, or a sequence of keys concurrently.

        Subscriptions are kept: see module notes.

        Raises:
            InvalidKeyTypeError: If ``key`` is neither a str nor a sequence of str.
            CacheDeleteError: The first failed delete.
        """
        logger.debug("cache.delete", extra={"extra": {"key": key}})
        with observe_cache_operation("delete"):
            if isinstance(key, str):
                return await self._delete_one(key)
            if (
                isinstance(key, Sequence)
                and not isinstance(key, bytes | bytearray)
                and all(isinstance(k, str) for k in key)
            ):
                return list(await asyncio.gather(*(self._delete_one(k) for k in key)))
            raise InvalidKeyTypeError(
                "`key` type should be either str or a sequence of str",
                details={"type": type(key).__name__},
            )

    async def flush(self) -> bool:
        """Stop background refresh, drop all subscriptions and empty the server.

        Raises:
            CacheFlushError: If the server flush fails.
        """
        logger.debug("cache.flush")
        self._scheduler.disable()
        self._registry.clear()
        with observe_cache_operation("flush"):
            return await self._client.flush()

    async def close(self) -> None:
        """Cancel background work and release the adapter's connections."""
        await self._scheduler.shutdown()
        await self._client.close()


async def read_through(
    cache: RefreshingCache,
    key: str,
    *,
    loader: RefreshCallback,
    lifetime: int | None = None,
    refresh: bool = False,
) -> Any | None:
    """Read-through helper: return the cached value or load and store it.

    Args:
        cache: Refreshing cache facade.
        key: Cache key.
        loader: Coroutine function fetching the value on a miss.
        lifetime: Seconds to live for a newly loaded value.
        refresh: Also subscribe ``loader`` as the key's refresh callback.

    Returns:
        The cached or loaded value, or ``None`` if the loader returns ``None``.
    """
    cached = await cache.get(key)
    if cached is not None:
        return cached

    value = await loader(key)
    if value is not None:
        await cache.set(key, value, lifetime=lifetime, refresh=loader if refresh else None)
    return value
