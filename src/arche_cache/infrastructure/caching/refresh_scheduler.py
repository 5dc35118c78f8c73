# src/arche_cache/infrastructure/caching/refresh_scheduler.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Background Refresh Scheduler.

Synopsis:
    One asyncio task that wakes every ``interval_ms``, scans the refresh
    registry and re-computes keys whose remaining lifetime dropped under
    ``min_ttl_ms``. Each due key gets its own refresh task: the subscription's
    callback produces a value, and the writer (the facade's refreshing set)
    stores it with the subscription's lifetime and callback reattached.

State machine:
    ``Disabled`` -> ``Enabled`` on the first subscription; back to
    ``Disabled`` only through ``disable()`` (called by the facade's flush).
    With interval checking on, enabling with ``interval_ms > min_ttl_ms``
    raises `BackgroundRefreshIntervalError` and the scheduler stays disabled.

Guarantees:
    * A failed callback leaves its subscription untouched; the key is due
      again on the next tick.
    * At most one refresh per key is in flight; a key still refreshing is
      skipped by later ticks.
    * ``disable()`` stops the periodic task only. Refreshes already running
      may finish and write late.

Layer:
    infrastructure/caching
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias

from arche_cache.domain.entities.refresh_subscription import RefreshSubscription
from arche_cache.domain.exceptions.base import CacheError
from arche_cache.domain.exceptions.cache import BackgroundRefreshIntervalError
from arche_cache.infrastructure.caching.refresh_registry import RefreshRegistry
from arche_cache.infrastructure.logging.logger import get_json_logger
from arche_cache.infrastructure.observability.metrics import record_background_refresh

__all__ = ["BackgroundRefreshScheduler", "RefreshWriter"]

logger = get_json_logger(__name__)

#: Stores a refreshed value for a subscription (key, lifetime, callback).
RefreshWriter: TypeAlias = Callable[[RefreshSubscription, Any], Awaitable[Any]]


class BackgroundRefreshScheduler:
    """Interval-driven refresher of subscribed keys."""

    def __init__(
        self,
        registry: RefreshRegistry,
        writer: RefreshWriter,
        *,
        interval_ms: int = 60_000,
        min_ttl_ms: int = 70_000,
        interval_check: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the scheduler in the ``Disabled`` state.

        Args:
            registry: Subscriptions to scan.
            writer: Coroutine storing a refreshed value for a subscription.
            interval_ms: Tick period in milliseconds.
            min_ttl_ms: Remaining-lifetime threshold in milliseconds.
            interval_check: Enforce ``interval_ms <= min_ttl_ms`` on enable.
            clock: Epoch seconds source.
        """
        self._registry = registry
        self._writer = writer
        self.interval_ms = interval_ms
        self.min_ttl_ms = min_ttl_ms
        self.interval_check = interval_check
        self._clock = clock

        self._enabled = False
        self._task: asyncio.Task[None] | None = None
        self._in_flight: set[str] = set()
        self._pending: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #
    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def in_flight(self) -> frozenset[str]:
        """Keys whose refresh is currently running."""
        return frozenset(self._in_flight)

    def enable(self) -> bool:
        """Start the periodic scan unless already running.

        Must be called from a running event loop.

        Returns:
            bool: True if this call performed the ``Disabled -> Enabled`` transition.

        Raises:
            BackgroundRefreshIntervalError: If interval checking is on and the
                interval exceeds the min-TTL threshold.
        """
        if self._enabled:
            return False

        if self.interval_check and self.interval_ms > self.min_ttl_ms:
            raise BackgroundRefreshIntervalError(
                "backgroundRefreshInterval cannot be greater than backgroundRefreshMinTtl.",
                details={"interval_ms": self.interval_ms, "min_ttl_ms": self.min_ttl_ms},
            )

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="arche-cache-background-refresh")
        self._enabled = True
        logger.debug(
            "cache.refresh.enabled",
            extra={
                "extra": {
                    "interval_check": self.interval_check,
                    "interval_ms": self.interval_ms,
                    "min_ttl_ms": self.min_ttl_ms,
                }
            },
        )
        return True

    def disable(self) -> None:
        """Cancel the periodic scan; in-flight refreshes are left to finish."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._enabled:
            logger.debug("cache.refresh.disabled")
        self._enabled = False

    async def drain(self) -> None:
        """Wait for every in-flight refresh task to finish."""
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Disable the scheduler and cancel in-flight refreshes."""
        self.disable()
        for task in list(self._pending):
            task.cancel()
        await self.drain()

    # ------------------------------------------------------------------ #
    # Scanning
    # ------------------------------------------------------------------ #
    async def _run(self) -> None:
        interval_s = self.interval_ms / 1000
        while True:
            await asyncio.sleep(interval_s)
            self.tick()

    def tick(self) -> list[str]:
        """Scan once and start a refresh for every due, idle subscription.

        Returns:
            list[str]: Keys whose refresh was started by this tick.
        """
        now_ms = self._clock() * 1000
        started: list[str] = []
        for subscription in self._registry.snapshot():
            if subscription.key in self._in_flight:
                continue
            if not subscription.is_due(now_ms, self.min_ttl_ms):
                continue
            self._in_flight.add(subscription.key)
            task = asyncio.get_running_loop().create_task(self._refresh(subscription))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            started.append(subscription.key)
        return started

    async def _refresh(self, subscription: RefreshSubscription) -> None:
        key = subscription.key
        try:
            try:
                value = await subscription.callback(key)
            except Exception as exc:
                logger.warning(
                    "cache.refresh.callback_failed",
                    extra={"extra": {"key": key, "error": repr(exc)}},
                )
                record_background_refresh("callback_error")
                return

            try:
                await self._writer(subscription, value)
            except CacheError as exc:
                logger.warning(
                    "cache.refresh.write_failed",
                    extra={"extra": {"key": key, "error": str(exc)}},
                )
                record_background_refresh("write_error")
                return

            logger.debug(
                "cache.refresh.success",
                extra={"extra": {"key": key, "lifetime": subscription.life_span}},
            )
            record_background_refresh("refreshed")
        finally:
            self._in_flight.discard(key)
