"""Tests for addon dialect classification and candidate URLs."""

from __future__ import annotations

from crumble.domain.entities import AddonEndpoint, StreamQuery
from crumble.infrastructure.addons.dialects import (
    AddonDialect,
    build_candidate_urls,
    classify_dialect,
    normalize_base_url,
)

_MOVIE = StreamQuery(media_type="movie", media_id="tt0133093")
_EPISODE = StreamQuery(media_type="series", media_id="tt0944947", season=1, episode=2)


class TestClassifyDialect:
    def test_torrentio_by_url(self, torrentio_addon: AddonEndpoint) -> None:
        assert classify_dialect(torrentio_addon) == AddonDialect.TORRENTIO

    def test_torrentio_by_name(self) -> None:
        addon = AddonEndpoint(
            id="x", display_name="My TORRENTIO mirror", base_url="https://m"
        )
        assert classify_dialect(addon) == AddonDialect.TORRENTIO

    def test_cinemeta(self, cinemeta_addon: AddonEndpoint) -> None:
        assert classify_dialect(cinemeta_addon) == AddonDialect.CINEMETA

    def test_everything_else_is_generic(self, generic_addon: AddonEndpoint) -> None:
        assert classify_dialect(generic_addon) == AddonDialect.GENERIC


class TestNormalizeBaseUrl:
    def test_strips_manifest_and_slash(self) -> None:
        assert normalize_base_url("https://a.b/x/manifest.json") == "https://a.b/x"
        assert normalize_base_url("https://a.b/x/") == "https://a.b/x"
        assert normalize_base_url(" https://a.b ") == "https://a.b"


class TestTorrentioUrls:
    def test_movie(self, torrentio_addon: AddonEndpoint) -> None:
        base = "https://torrentio.strem.fun"
        assert build_candidate_urls(torrentio_addon, _MOVIE) == [
            f"{base}/stream/movie/tt0133093.json",
            f"{base}/stream/movie/tt0133093:1080p.json",
            f"{base}/stream/movie/tt0133093:720p.json",
        ]

    def test_series(self, torrentio_addon: AddonEndpoint) -> None:
        base = "https://torrentio.strem.fun"
        assert build_candidate_urls(torrentio_addon, _EPISODE) == [
            f"{base}/stream/series/tt0944947:1:2.json",
            f"{base}/stream/series/tt0944947:1:2:1080p.json",
            f"{base}/stream/tv/tt0944947:1:2.json",
        ]


class TestCinemetaUrls:
    def test_single_canonical_url(self, cinemeta_addon: AddonEndpoint) -> None:
        assert build_candidate_urls(cinemeta_addon, _MOVIE) == [
            "https://v3-cinemeta.strem.io/stream/movie/tt0133093.json"
        ]


class TestGenericUrls:
    def test_movie(self, generic_addon: AddonEndpoint) -> None:
        base = "https://addon.example.com"
        assert build_candidate_urls(generic_addon, _MOVIE) == [
            f"{base}/stream/movie/tt0133093.json",
            f"{base}/streams/movie/tt0133093.json",
            f"{base}/api/stream/movie/tt0133093.json",
        ]

    def test_series_adds_path_variants(self, generic_addon: AddonEndpoint) -> None:
        urls = build_candidate_urls(generic_addon, _EPISODE)
        base = "https://addon.example.com"
        assert urls[0] == f"{base}/stream/series/tt0944947:1:2.json"
        assert f"{base}/stream/series/tt0944947/1/2.json" in urls
        assert f"{base}/stream/series/tt0944947_1_2.json" in urls
        assert len(urls) == len(set(urls))

    def test_media_id_is_path_quoted(self, generic_addon: AddonEndpoint) -> None:
        q = StreamQuery(media_type="movie", media_id="tmdb:603 x/y")
        url = build_candidate_urls(generic_addon, q)[0]
        assert url.endswith("/stream/movie/tmdb:603%20x%2Fy.json")
