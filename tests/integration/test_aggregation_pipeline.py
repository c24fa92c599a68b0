"""End-to-end aggregation through the real composition root.

Only the network is faked (respx); dialects, transports, retries,
normalization, dedup, ranking and caching all run for real.
"""

from __future__ import annotations

from typing import Any

import httpx
import pytest
import respx

from crumble.domain.entities import QualityTier
from crumble.infrastructure.composition import build_engine
from crumble.infrastructure.config.schema import AppConfig

pytestmark = pytest.mark.integration

_HASH = "ABCDEF0123456789ABCDEF0123456789ABCDEF01"

_A_PAYLOAD: dict[str, Any] = {
    "streams": [
        {
            "name": "Addon A\n1080p",
            "title": "The.Matrix.1999.1080p.BluRay.x264\n👤 120 💾 8.5 GB",
            "infoHash": _HASH,
            "fileIdx": 0,
        },
        {"title": "The Matrix 720p", "url": "https://cdn.a.example/matrix-720.mp4"},
        {"title": "No locator at all"},
        {"title": "Same torrent, other label", "infoHash": _HASH.lower(), "fileIdx": 0},
    ]
}


def _config(**extra: Any) -> AppConfig:
    return AppConfig.model_validate(
        {
            "environment": "test",
            "aggregation": {
                "retry_attempts": 2,
                "backoff_base_seconds": 0.0,
                "max_backoff_seconds": 0.0,
                "transports": ["direct"],
            },
            "addons": [
                {
                    "id": "a",
                    "name": "Addon A",
                    "url": "https://a.example/manifest.json",
                },
                {"id": "b", "name": "Addon B", "url": "https://b.example"},
                {
                    "id": "c",
                    "name": "Addon C",
                    "url": "https://c.example",
                    "enabled": False,
                },
            ],
            **extra,
        }
    )


class TestAggregationPipeline:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_merges_normalizes_and_caches(self) -> None:
        route_a = respx.get("https://a.example/stream/movie/tt0133093.json").respond(
            json=_A_PAYLOAD
        )
        route_b = respx.get(host="b.example").respond(status_code=500)
        route_c = respx.get(host="c.example").respond(json={"streams": []})

        async with httpx.AsyncClient() as http:
            engine = build_engine(_config(), http)
            streams = await engine.aggregate.aggregate("movie", "tt0133093")
            again = await engine.aggregate.aggregate("movie", "tt0133093")

        assert len(streams) == 2
        torrent, direct = streams

        assert torrent.locator.info_hash == _HASH.lower()
        assert torrent.locator.file_index == 0
        assert torrent.source_tag == "torrent"
        assert torrent.quality == QualityTier.P1080
        assert torrent.seeders == 120
        assert torrent.size_bytes == int(8.5 * 1024**3)
        assert torrent.display_title.startswith("The.Matrix.1999")

        assert direct.locator.uri == "https://cdn.a.example/matrix-720.mp4"
        assert direct.quality == QualityTier.P720
        assert direct.source_tag == "mp4"
        assert direct.seeders is None

        assert again == streams
        assert route_a.call_count == 1
        # Every candidate url, two attempts, for the failing addon.
        assert route_b.call_count == 6
        assert not route_c.called

        stats = engine.state.metrics.addon("b")
        assert (stats.queries, stats.failures) == (1, 1)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_tmdb_fallback_pass(self) -> None:
        respx.get("https://a.example/stream/movie/tt0133093.json").respond(
            json={"streams": []}
        )
        respx.get("https://a.example/stream/movie/tmdb:603.json").respond(
            json={"streams": [{"title": "Matrix 4K", "url": "https://cdn/m.mkv"}]}
        )
        respx.get(host="b.example").respond(json={"results": []})
        find = respx.get("https://api.themoviedb.org/3/find/tt0133093").respond(
            json={"movie_results": [{"id": 603}], "tv_results": []}
        )

        async with httpx.AsyncClient() as http:
            engine = build_engine(_config(tmdb_api_key="k"), http)
            streams = await engine.aggregate.aggregate("movie", "tt0133093")

        assert [s.locator.uri for s in streams] == ["https://cdn/m.mkv"]
        assert streams[0].quality == QualityTier.UHD_4K
        assert find.call_count == 1
        assert engine.state.metrics.fallback_passes == 1

    @respx.mock
    @pytest.mark.asyncio()
    async def test_series_episode_url(self) -> None:
        episode = {"title": "S01E02 720p", "url": "https://x/e.mp4"}
        route = respx.get(
            "https://a.example/stream/series/tt0944947:1:2.json"
        ).respond(json={"streams": [episode]})
        respx.get(host="b.example").respond(json={"streams": []})

        async with httpx.AsyncClient() as http:
            engine = build_engine(_config(), http)
            streams = await engine.aggregate.aggregate(
                "series", "tt0944947", season=1, episode=2
            )

        assert route.called
        assert len(streams) == 1
        assert streams[0].source_addon_id == "a"
