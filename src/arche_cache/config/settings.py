# src/arche_cache/config/settings.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Arche Cache Configuration (Pydantic Settings, v2)

Summary:
    Typed, validated configuration for the refreshing cache facade. Only the
    bootstrap helpers read the process environment; the facade, registry and
    scheduler receive a `CacheSettings` instance (or plain values) explicitly.

Design:
    - Pydantic v2 BaseSettings; unknown env vars are ignored.
    - Explicit field declarations with constrained types and ranges.
    - Background refresh timings are milliseconds, lifetimes are seconds.
    - The interval/min-TTL relationship is *not* validated here: it is
      enforced when background refresh is first enabled, so a misconfigured
      process still serves plain get/set traffic.
    - Singleton accessor `get_settings()` with LRU cache.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any
from urllib.parse import urlparse, urlunparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["CacheSettings", "get_settings"]

_DEFAULT_REDIS_URL = "redis://localhost:6379/0"


class CacheSettings(BaseSettings):
    """Typed configuration for the refreshing cache facade."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # ---------------------------
    # Redis connection
    # ---------------------------
    redis_url: str = Field(
        default=_DEFAULT_REDIS_URL,
        description="Redis connection URL of the cache server.",
        validation_alias="CACHE_REDIS_URL",
    )
    namespace: str = Field(
        default="",
        description="Optional prefix applied to every key written by the adapter.",
        validation_alias="CACHE_NAMESPACE",
    )
    redis_health_check_interval_s: int = Field(
        default=15,
        ge=1,
        le=3600,
        description="Health check interval for Redis clients in seconds.",
        validation_alias="CACHE_REDIS_HEALTH_CHECK_INTERVAL_S",
    )
    redis_socket_timeout_s: float = Field(
        default=3.0,
        ge=0.1,
        le=60.0,
        description="Socket timeout in seconds for Redis commands.",
        validation_alias="CACHE_REDIS_SOCKET_TIMEOUT_S",
    )
    redis_socket_connect_timeout_s: float = Field(
        default=3.0,
        ge=0.1,
        le=60.0,
        description="Socket connect timeout in seconds for Redis.",
        validation_alias="CACHE_REDIS_SOCKET_CONNECT_TIMEOUT_S",
    )

    # ---------------------------
    # Lifetimes & background refresh
    # ---------------------------
    default_lifetime: int = Field(
        default=90,
        ge=1,
        description="Lifetime in seconds applied when add/set/mset get no explicit lifetime.",
        validation_alias="CACHE_DEFAULT_LIFETIME_S",
    )
    background_refresh_interval_check: bool = Field(
        default=True,
        description="Refuse to enable background refresh when interval > min TTL.",
        validation_alias="CACHE_BACKGROUND_REFRESH_INTERVAL_CHECK",
    )
    background_refresh_interval_ms: int = Field(
        default=60_000,
        ge=1,
        description="How often (milliseconds) subscriptions are scanned for refresh.",
        validation_alias="CACHE_BACKGROUND_REFRESH_INTERVAL_MS",
    )
    background_refresh_min_ttl_ms: int = Field(
        default=70_000,
        ge=1,
        description=(
            "Remaining lifetime (milliseconds) under which a subscribed key is "
            "refreshed on the next scan."
        ),
        validation_alias="CACHE_BACKGROUND_REFRESH_MIN_TTL_MS",
    )

    # ---------------------------
    # Logging
    # ---------------------------
    verbose: bool = Field(
        default=False,
        description="Enable DEBUG logging for the arche_cache logger namespace.",
        validation_alias="CACHE_VERBOSE",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level applied by bootstrap() through configure_root_logging().",
        validation_alias="LOG_LEVEL",
    )

    def redacted_dump(self) -> dict[str, Any]:
        """Return a log-safe dict with credentials stripped from the Redis URL."""
        data = self.model_dump()
        data["redis_url"] = _redact_url(self.redis_url)
        return data


def _redact_url(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.password:
        return url
    host = parsed.hostname or ""
    if parsed.port:
        host = f"{host}:{parsed.port}"
    netloc = f"{parsed.username or ''}:***@{host}"
    return urlunparse(parsed._replace(netloc=netloc))


@lru_cache(maxsize=1)
def get_settings() -> CacheSettings:
    """Return the process-wide settings singleton."""
    return CacheSettings()
