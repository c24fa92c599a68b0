"""Domain entities for stream aggregation.

Pure value objects. No framework dependencies and no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Literal

from crumble.domain.entities.errors import InvalidQuery

MediaType = Literal["movie", "series"]
SourceTag = Literal["torrent", "hls", "mp4", "mkv", "unknown"]

CacheKey = tuple[str, str, int | None, int | None]

_MEDIA_TYPES: frozenset[str] = frozenset({"movie", "series"})


class QualityTier(IntEnum):
    """Ranked quality tiers (higher value = better quality)."""

    UNKNOWN = 0
    P240 = 240
    P360 = 360
    P480 = 480
    P720 = 720
    P1080 = 1080
    P1440 = 1440
    UHD_4K = 2160

    @property
    def label(self) -> str:
        if self is QualityTier.UNKNOWN:
            return "Unknown"
        if self is QualityTier.UHD_4K:
            return "4K"
        return f"{self.value}p"


@dataclass(frozen=True)
class AddonEndpoint:
    """Snapshot of one installed addon, owned by addon management."""

    id: str
    display_name: str
    base_url: str
    enabled: bool = True


@dataclass(frozen=True)
class PlaybackLocator:
    """Where a stream can be played from: a URI, a torrent hash, or both."""

    uri: str | None = None
    info_hash: str | None = None
    file_index: int | None = None

    @property
    def is_torrent(self) -> bool:
        return self.info_hash is not None or (
            self.uri is not None and self.uri.startswith("magnet:")
        )

    def keys(self) -> tuple[str, ...]:
        """Identity keys; two locators sharing any key are the same stream."""
        out: list[str] = []
        if self.uri:
            out.append(f"uri:{self.uri}")
        if self.info_hash:
            idx = "" if self.file_index is None else str(self.file_index)
            out.append(f"hash:{self.info_hash}:{idx}")
        return tuple(out)

    @property
    def sort_key(self) -> str:
        return "|".join(self.keys())


@dataclass(frozen=True)
class NormalizedStream:
    """Canonical, scored stream record produced by the normalizer."""

    source_addon_id: str
    source_addon_name: str
    locator: PlaybackLocator
    display_title: str
    observed_at: datetime
    quality: QualityTier = QualityTier.UNKNOWN
    size_bytes: int | None = None
    seeders: int | None = None
    language: str | None = None
    source_tag: SourceTag = "unknown"
    reliability: int = 0


@dataclass(frozen=True)
class StreamQuery:
    """Validated aggregation request.

    ``season`` and ``episode`` travel together and only apply to series;
    they are dropped for movies.
    """

    media_type: MediaType
    media_id: str
    season: int | None = None
    episode: int | None = None
    title_hint: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.media_type, str) or not isinstance(self.media_id, str):
            raise InvalidQuery("media type and media id must be strings")
        for value in (self.season, self.episode):
            if value is not None and (
                isinstance(value, bool) or not isinstance(value, int)
            ):
                raise InvalidQuery(f"season/episode must be integers: {value!r}")
        if self.title_hint is not None and not isinstance(self.title_hint, str):
            raise InvalidQuery("title hint must be a string")
        if self.media_type not in _MEDIA_TYPES:
            raise InvalidQuery(f"unsupported media type: {self.media_type!r}")
        if not self.media_id or not self.media_id.strip():
            raise InvalidQuery("media id must not be empty")
        if (self.season is None) != (self.episode is None):
            raise InvalidQuery("season and episode must be given together")
        if self.season is not None and (self.season < 0 or self.episode < 0):
            raise InvalidQuery("season and episode must be non-negative")
        if self.media_type == "movie" and self.season is not None:
            object.__setattr__(self, "season", None)
            object.__setattr__(self, "episode", None)

    @property
    def has_episode(self) -> bool:
        return self.season is not None and self.episode is not None

    @property
    def cache_key(self) -> CacheKey:
        return (self.media_type, self.media_id, self.season, self.episode)

    def with_media_id(self, media_id: str) -> StreamQuery:
        return StreamQuery(
            media_type=self.media_type,
            media_id=media_id,
            season=self.season,
            episode=self.episode,
            title_hint=self.title_hint,
        )


@dataclass(frozen=True)
class ProxyHealthRecord:
    """Circuit-breaker view of one CORS relay."""

    proxy_id: str
    is_eligible: bool
    consecutive_failures: int
    last_checked_at: float | None = None
