# src/arche_cache/infrastructure/caching/refresh_registry.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Refresh Registry.

Synopsis:
    Lock-guarded mapping of cache key -> `RefreshSubscription`. The facade
    writes on every refreshing set while the scheduler scans concurrently, so
    every access goes through one re-entrant lock. Scans work on `snapshot()`
    copies; the lock is never held while refresh callbacks run.

Layer:
    infrastructure/caching
"""

from __future__ import annotations

import threading

from arche_cache.domain.entities.refresh_subscription import RefreshSubscription

__all__ = ["RefreshRegistry"]


class RefreshRegistry:
    """Thread-safe mapping of keys to their refresh subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, RefreshSubscription] = {}
        self._lock = threading.RLock()

    def upsert(self, subscription: RefreshSubscription) -> None:
        """Insert or replace the subscription for ``subscription.key``."""
        with self._lock:
            self._subscriptions[subscription.key] = subscription

    def remove(self, key: str) -> RefreshSubscription | None:
        """Drop the subscription for ``key``; returns the removed record, if any."""
        with self._lock:
            return self._subscriptions.pop(key, None)

    def get(self, key: str) -> RefreshSubscription | None:
        with self._lock:
            return self._subscriptions.get(key)

    def snapshot(self) -> list[RefreshSubscription]:
        """Return a point-in-time copy of every subscription."""
        with self._lock:
            return list(self._subscriptions.values())

    def snapshot_keys(self) -> list[str]:
        with self._lock:
            return list(self._subscriptions)

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._subscriptions
