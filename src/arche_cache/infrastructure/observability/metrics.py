# Copyright (c)
# SPDX-License-Identifier: MIT
"""Prometheus metrics for the refreshing cache (registry-aware, hot-reload safe).

Collectors:

* ``cache_operations_total{operation,outcome}`` (Counter)
* ``cache_operation_duration_seconds{operation}`` (Histogram)
* ``cache_background_refresh_total{outcome}`` (Counter)

All collectors are bound to the **current** ``prometheus_client.REGISTRY``
through get-or-create accessors, so tests that swap the default registry and
module re-imports never trigger duplicate-registration errors.

Example:
    with observe_cache_operation("get") as obs:
        raw = await client.get(key)
        obs.outcome = "hit" if raw is not None else "miss"
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from time import perf_counter
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

__all__ = [
    "CacheObservation",
    "get_background_refresh_total",
    "get_cache_operation_duration_seconds",
    "get_cache_operations_total",
    "observe_cache_operation",
    "record_background_refresh",
]

_log = logging.getLogger(__name__)

# Cache round-trips are sub-millisecond on a healthy LAN.
_BUCKETS: Final[tuple[float, ...]] = (
    0.0005,
    0.001,
    0.0025,
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
)

# Cache keyed by metric name within the currently-active registry.
_registry_id: int | None = None
_hist_cache: dict[str, Histogram] = {}
_counter_cache: dict[str, Counter] = {}
_lock = threading.RLock()


# ---------------------------------------------------------------------------
# Registry-handling primitives


def _ensure_registry() -> None:
    """Reset caches if the active registry changed."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id is None or _registry_id != rid:
            _hist_cache.clear()
            _counter_cache.clear()
            _registry_id = rid


def _lookup_existing_hist(name: str) -> Histogram | None:
    """Return a previously-registered ``Histogram`` from the active registry."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, Histogram):
                return col
    return None


def _lookup_existing_counter(name: str) -> Counter | None:
    """Return a previously-registered ``Counter`` from the active registry."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, Counter):
                return col
    return None


def _get_or_create_hist(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Histogram:
    """Get or create a registry-bound ``Histogram`` with stable identity.

    Strategy:
    1. Return from module cache if present for the active registry.
    2. If registry already has a collector by this name, reuse it.
    3. Otherwise, register a new collector on the active registry.
    4. If concurrent registration triggers a duplication error, retry step 2.
    """
    _ensure_registry()
    with _lock:
        cached = _hist_cache.get(name)
        if cached is not None:
            return cached

        existing = _lookup_existing_hist(name)
        if existing is not None:
            _hist_cache[name] = existing
            return existing

        try:
            h = Histogram(name, help_text, labelnames, buckets=_BUCKETS, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing_hist(name)
                if again is not None:
                    _hist_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus histogram %s", name)
            raise
        _hist_cache[name] = h
        return h


def _get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a registry-bound ``Counter`` with stable identity."""
    _ensure_registry()
    with _lock:
        cached = _counter_cache.get(name)
        if cached is not None:
            return cached

        existing = _lookup_existing_counter(name)
        if existing is not None:
            _counter_cache[name] = existing
            return existing

        try:
            c = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing_counter(name)
                if again is not None:
                    _counter_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus counter %s", name)
            raise
        _counter_cache[name] = c
        return c


# ---------------------------------------------------------------------------
# Accessors


def get_cache_operations_total() -> Counter:
    """Return the counter of facade operations.

    Labels:
        operation: ``add|get|mget|set|mset|delete|flush``.
        outcome: ``ok|hit|miss|error``.
    """
    return _get_or_create_counter(
        name="cache_operations_total",
        help_text="Cache facade operations by outcome",
        labelnames=("operation", "outcome"),
    )


def get_cache_operation_duration_seconds() -> Histogram:
    """Return the latency histogram of facade operations (seconds)."""
    return _get_or_create_hist(
        name="cache_operation_duration_seconds",
        help_text="Latency (seconds) of cache facade operations",
        labelnames=("operation",),
    )


def get_background_refresh_total() -> Counter:
    """Return the counter of background refresh attempts.

    Labels:
        outcome: ``refreshed|callback_error|write_error``.
    """
    return _get_or_create_counter(
        name="cache_background_refresh_total",
        help_text="Background refresh attempts by outcome",
        labelnames=("outcome",),
    )


# ---------------------------------------------------------------------------
# Helpers


@dataclass
class CacheObservation:
    """Mutable state for one observed facade operation."""

    operation: str
    outcome: str = "ok"
    start: float = field(default_factory=perf_counter)


@contextmanager
def observe_cache_operation(operation: str) -> Generator[CacheObservation, None, None]:
    """Record latency and outcome of one facade operation.

    The outcome defaults to ``ok``; an escaping exception records ``error``.
    Metric recording never raises into the caller.
    """
    obs = CacheObservation(operation=operation)
    try:
        yield obs
    except Exception:
        obs.outcome = "error"
        raise
    finally:
        elapsed = perf_counter() - obs.start
        with suppress(Exception):
            get_cache_operation_duration_seconds().labels(operation=obs.operation).observe(
                elapsed
            )
            get_cache_operations_total().labels(
                operation=obs.operation, outcome=obs.outcome
            ).inc()


def record_background_refresh(outcome: str) -> None:
    """Increment the background refresh counter; never raises."""
    with suppress(Exception):
        get_background_refresh_total().labels(outcome=outcome).inc()
