"""In-memory TTL cache for final aggregation results."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from crumble.domain.entities.streams import CacheKey, NormalizedStream

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    streams: tuple[NormalizedStream, ...]
    expires_at: float


class InMemoryResultCache:
    """Implements ``ResultCachePort``.

    Entries are replaced wholesale on ``put`` and evicted lazily when a
    read finds them expired.  Expiry uses a monotonic clock so wall-clock
    jumps never resurrect or kill entries.
    """

    def __init__(
        self,
        *,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}

    def get(self, key: CacheKey) -> tuple[NormalizedStream, ...] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            log.debug("result_cache_expired", key=key)
            return None
        return entry.streams

    def put(
        self,
        key: CacheKey,
        streams: Sequence[NormalizedStream],
        *,
        ttl: float | None = None,
    ) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            return
        self._entries[key] = CacheEntry(
            streams=tuple(streams), expires_at=self._clock() + ttl
        )

    def invalidate(self, key: CacheKey) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
