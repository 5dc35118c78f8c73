# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Refresh Subscription Entity

Purpose:
    Immutable record binding a cache key to the coroutine that recomputes its
    value, the lifetime reapplied on each refresh, and the absolute time the
    current value expires. Every successful (refresh-)set replaces the record
    with a fresh expiration; nothing mutates a subscription in place.

Layer: domain/entities
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

from .base import BaseEntity

__all__ = ["RefreshCallback", "RefreshSubscription"]

#: Coroutine function producing a replacement value for ``key``; raises on failure.
RefreshCallback: TypeAlias = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class RefreshSubscription(BaseEntity):
    """Background refresh registration for one key.

    Args:
        key: Cache key (unique within the registry).
        expires_at_ms: Epoch milliseconds at which the stored value expires.
        life_span: Lifetime in seconds reapplied on every refresh.
        callback: Coroutine function returning the fresh value for ``key``.

    Raises:
        ValueError: If the key is empty or the lifetime is not positive.
    """

    key: str
    expires_at_ms: float
    life_span: int
    callback: RefreshCallback

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("key must be a non-empty string")
        if self.life_span <= 0:
            raise ValueError("life_span must be > 0")

    @classmethod
    def starting_at(
        cls, key: str, *, now_ms: float, life_span: int, callback: RefreshCallback
    ) -> RefreshSubscription:
        """Build a subscription whose value was written at ``now_ms``."""
        return cls(
            key=key,
            expires_at_ms=now_ms + life_span * 1000,
            life_span=life_span,
            callback=callback,
        )

    def remaining_ms(self, now_ms: float) -> float:
        """Milliseconds until the current value expires (negative once expired)."""
        return self.expires_at_ms - now_ms

    def is_due(self, now_ms: float, min_ttl_ms: float) -> bool:
        """Return True when the remaining lifetime is under ``min_ttl_ms``."""
        return self.remaining_ms(now_ms) < min_ttl_ms
