"""Result cache port."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from crumble.domain.entities.streams import CacheKey, NormalizedStream


class ResultCachePort(Protocol):
    """TTL cache of final, ranked aggregation results.

    Entries are replaced wholesale, never patched.
    """

    def get(self, key: CacheKey) -> tuple[NormalizedStream, ...] | None:
        """Return the cached streams. None = not found / expired."""
        ...

    def put(
        self,
        key: CacheKey,
        streams: Sequence[NormalizedStream],
        *,
        ttl: float | None = None,
    ) -> None: ...

    def invalidate(self, key: CacheKey) -> bool:
        """Delete one entry. True = deleted, False = did not exist."""
        ...

    def clear(self) -> None: ...

    def __len__(self) -> int: ...
