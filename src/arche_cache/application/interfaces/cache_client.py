# src/arche_cache/application/interfaces/cache_client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application Interface: Cache Client.

Synopsis:
    The single-key/multi-key operations the refreshing cache facade needs
    from the cache server. Values cross this boundary as text; encoding and
    decoding is the facade's job. Implementations own connection pooling,
    reconnects and server selection.

Error contract:
    * ``add``/``set`` raise ``CacheWriteError``.
    * ``get``/``get_multi`` raise ``CacheReadError``.
    * ``delete`` raises ``CacheDeleteError``.
    * ``flush`` raises ``CacheFlushError``.
    * ``connect`` raises ``CacheServerDownError`` when the server is unreachable.

Layer:
    application/interfaces
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheClient(Protocol):
    """Text key/value cache with TTL semantics (seconds)."""

    async def connect(self) -> None:
        """Verify the server is reachable."""

    async def add(self, key: str, value: Any, lifetime: int) -> bool:
        """Store ``value`` only when ``key`` is absent."""

    async def get(self, key: str) -> str | None:
        """Return the stored text, or ``None`` on a miss."""

    async def get_multi(self, keys: Sequence[str]) -> dict[str, str]:
        """Return a mapping containing only the keys present on the server."""

    async def set(self, key: str, value: Any, lifetime: int) -> bool:
        """Store ``value`` unconditionally."""

    async def delete(self, key: str) -> bool:
        """Remove ``key``; returns whether it existed."""

    async def flush(self) -> bool:
        """Remove every entry on the server."""

    async def close(self) -> None:
        """Release connections."""
