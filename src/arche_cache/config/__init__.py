"""
Config package export.

Keeps import sites clean and stable:
    from arche_cache.config import get_settings, CacheSettings
"""

from __future__ import annotations

from .settings import CacheSettings, get_settings

__all__ = ["CacheSettings", "get_settings"]
