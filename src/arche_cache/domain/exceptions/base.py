# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Base Cache Exceptions.

Summary:
    Canonical base class for every error raised by the cache facade, its
    adapter and the background refresh scheduler.

Layer:
    domain/exceptions
"""
from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base class for all arche_cache exceptions."""

    code: str = "CACHE_ERROR"

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}
