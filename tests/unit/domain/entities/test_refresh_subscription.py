# tests/unit/domain/entities/test_refresh_subscription.py
from __future__ import annotations

import dataclasses

import pytest

from arche_cache.domain.entities.refresh_subscription import RefreshSubscription


async def _cb(key: str) -> str:
    return key


def test_starting_at_computes_expiration() -> None:
    sub = RefreshSubscription.starting_at("k", now_ms=1_000.0, life_span=90, callback=_cb)

    assert sub.expires_at_ms == 91_000.0
    assert sub.life_span == 90
    assert sub.callback is _cb


def test_remaining_and_due() -> None:
    sub = RefreshSubscription.starting_at("k", now_ms=0.0, life_span=90, callback=_cb)

    assert sub.remaining_ms(20_000.0) == 70_000.0
    assert sub.is_due(20_000.0, min_ttl_ms=70_000) is False
    assert sub.is_due(20_001.0, min_ttl_ms=70_000) is True
    assert sub.remaining_ms(100_000.0) < 0


def test_is_immutable() -> None:
    sub = RefreshSubscription.starting_at("k", now_ms=0.0, life_span=1, callback=_cb)
    with pytest.raises(dataclasses.FrozenInstanceError):
        sub.key = "other"  # type: ignore[misc]


@pytest.mark.parametrize("key, life_span", [("", 1), ("k", 0), ("k", -5)])
def test_rejects_invalid_fields(key: str, life_span: int) -> None:
    with pytest.raises(ValueError):
        RefreshSubscription.starting_at(key, now_ms=0.0, life_span=life_span, callback=_cb)
