# src/arche_cache/domain/value_objects/cache_values.py
"""Batch write entries (Domain Layer).

Purpose:
    Tagged variants accepted as values by ``RefreshingCache.mset``. A caller
    either stores a value under the batch lifetime (``PlainValue``, or any bare
    object) or pins a lifetime for that single entry (``ValueWithOverride``).

Layer:
    domain/value_objects
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeAlias

__all__ = ["BatchEntry", "PlainValue", "ValueWithOverride", "resolve_entry"]


@dataclass(frozen=True, slots=True)
class PlainValue:
    """Value stored with the batch-level (or default) lifetime."""

    value: Any


@dataclass(frozen=True, slots=True)
class ValueWithOverride:
    """Value stored with its own lifetime.

    A ``lifetime`` of ``None`` (or 0) falls back to the batch lifetime.
    """

    value: Any
    lifetime: int | None = None


BatchEntry: TypeAlias = PlainValue | ValueWithOverride


def resolve_entry(entry: Any, lifetime: int) -> tuple[Any, int]:
    """Return the ``(value, lifetime)`` pair to write for one batch entry.

    Args:
        entry: A ``PlainValue``, a ``ValueWithOverride`` or a bare value.
        lifetime: Lifetime already resolved from the batch and default.

    Returns:
        tuple[Any, int]: Unwrapped value and effective lifetime in seconds.
    """
    match entry:
        case ValueWithOverride(value=value, lifetime=override):
            return value, override or lifetime
        case PlainValue(value=value):
            return value, lifetime
        case _:
            return entry, lifetime
