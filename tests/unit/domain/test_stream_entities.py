"""Tests for stream aggregation domain entities."""

from __future__ import annotations

import dataclasses

import pytest

from crumble.domain.entities import (
    AllStrategiesExhausted,
    InvalidQuery,
    PlaybackLocator,
    QualityTier,
    StreamQuery,
    TransientNetworkError,
)


class TestQualityTier:
    def test_ordering_follows_resolution(self) -> None:
        assert QualityTier.UHD_4K > QualityTier.P1440 > QualityTier.P1080
        assert QualityTier.P720 > QualityTier.P480 > QualityTier.P360
        assert QualityTier.P240 > QualityTier.UNKNOWN

    def test_labels(self) -> None:
        assert QualityTier.UHD_4K.label == "4K"
        assert QualityTier.P1080.label == "1080p"
        assert QualityTier.UNKNOWN.label == "Unknown"


class TestPlaybackLocator:
    def test_uri_only_keys(self) -> None:
        loc = PlaybackLocator(uri="https://x/a.mp4")
        assert loc.keys() == ("uri:https://x/a.mp4",)
        assert loc.is_torrent is False

    def test_hash_keys_include_file_index(self) -> None:
        loc = PlaybackLocator(info_hash="abc", file_index=2)
        assert loc.keys() == ("hash:abc:2",)
        assert loc.is_torrent is True

    def test_magnet_is_torrent(self) -> None:
        assert PlaybackLocator(uri="magnet:?xt=urn:btih:abc").is_torrent is True

    def test_is_frozen(self) -> None:
        loc = PlaybackLocator(uri="https://x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            loc.uri = "https://y"  # type: ignore[misc]


class TestStreamQuery:
    def test_movie_drops_season_and_episode(self) -> None:
        q = StreamQuery(media_type="movie", media_id="tt1", season=1, episode=2)
        assert q.season is None
        assert q.episode is None
        assert q.cache_key == ("movie", "tt1", None, None)

    def test_series_keeps_episode(self) -> None:
        q = StreamQuery(media_type="series", media_id="tt1", season=1, episode=2)
        assert q.has_episode is True
        assert q.cache_key == ("series", "tt1", 1, 2)

    def test_unknown_media_type_rejected(self) -> None:
        with pytest.raises(InvalidQuery):
            StreamQuery(media_type="anime", media_id="tt1")  # type: ignore[arg-type]

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(InvalidQuery):
            StreamQuery(media_type="movie", media_id="  ")

    def test_season_without_episode_rejected(self) -> None:
        with pytest.raises(InvalidQuery):
            StreamQuery(media_type="series", media_id="tt1", season=1)

    def test_negative_episode_rejected(self) -> None:
        with pytest.raises(InvalidQuery):
            StreamQuery(media_type="series", media_id="tt1", season=1, episode=-1)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"media_type": ["movie"], "media_id": "tt1"},
            {"media_type": "movie", "media_id": 123},
            {"media_type": "series", "media_id": "tt1", "season": "1", "episode": 2},
            {"media_type": "series", "media_id": "tt1", "season": 1, "episode": False},
            {"media_type": "movie", "media_id": "tt1", "title_hint": 5},
        ],
    )
    def test_wrong_types_rejected(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(InvalidQuery):
            StreamQuery(**kwargs)  # type: ignore[arg-type]

    def test_with_media_id_keeps_everything_else(self) -> None:
        q = StreamQuery(
            media_type="series", media_id="tt1", season=2, episode=3, title_hint="X"
        )
        alt = q.with_media_id("tmdb:9")
        assert alt.media_id == "tmdb:9"
        assert (alt.season, alt.episode, alt.title_hint) == (2, 3, "X")


class TestErrors:
    def test_exhausted_keeps_context(self) -> None:
        cause = TransientNetworkError("HTTP 500")
        exc = AllStrategiesExhausted("a", 2, cause)
        assert exc.addon_id == "a"
        assert exc.attempts == 2
        assert exc.last_error is cause
        assert "HTTP 500" in str(exc)
