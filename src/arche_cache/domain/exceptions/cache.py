# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Cache Operation Exceptions

Purpose:
    Error conditions raised by the cache facade and the adapter underneath it.
    I/O errors are never retried internally; they surface to the awaiting
    caller. `SerializationError` is logged by the facade and never raised out
    of it.

Layer: domain/exceptions
"""
from __future__ import annotations

from .base import CacheError

__all__ = [
    "BackgroundRefreshIntervalError",
    "CacheDeleteError",
    "CacheFlushError",
    "CacheReadError",
    "CacheServerDownError",
    "CacheWriteError",
    "InvalidKeyTypeError",
    "SerializationError",
]


class CacheWriteError(CacheError):
    """The server rejected a write (e.g. `add` on an existing key) or was unreachable."""

    code = "CACHE_WRITE_ERROR"


class CacheReadError(CacheError):
    """A get or multi-get against the server failed."""

    code = "CACHE_READ_ERROR"


class CacheDeleteError(CacheError):
    """A delete against the server failed."""

    code = "CACHE_DELETE_ERROR"


class CacheFlushError(CacheError):
    """Flushing the server failed."""

    code = "CACHE_FLUSH_ERROR"


class InvalidKeyTypeError(CacheError):
    """`delete` was given something other than a string or a sequence of strings."""

    code = "INVALID_KEY_TYPE"


class SerializationError(CacheError):
    """A value could not be JSON encoded or decoded."""

    code = "SERIALIZATION_ERROR"


class BackgroundRefreshIntervalError(CacheError):
    """Background refresh interval is greater than the min-TTL threshold."""

    code = "BACKGROUND_REFRESH_INTERVAL_EXCEPTION"


class CacheServerDownError(CacheError):
    """The cache server is unreachable; fatal for this layer, never retried."""

    code = "CACHE_SERVER_DOWN"
