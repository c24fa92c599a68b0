"""Shared test fixtures for the crumble test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from crumble.domain.entities import (
    AddonEndpoint,
    NormalizedStream,
    PlaybackLocator,
    QualityTier,
)
from crumble.infrastructure.config.schema import AppConfig

_OBSERVED_AT = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_stream(
    *,
    uri: str | None = "https://cdn.example.com/a.mp4",
    info_hash: str | None = None,
    file_index: int | None = None,
    addon_id: str = "addon-a",
    addon_name: str = "Addon A",
    title: str = "Some.Movie.2020",
    quality: QualityTier = QualityTier.P1080,
    reliability: int = 50,
    seeders: int | None = None,
    size_bytes: int | None = None,
    **overrides: Any,
) -> NormalizedStream:
    """Build a NormalizedStream with sensible defaults."""
    return NormalizedStream(
        source_addon_id=addon_id,
        source_addon_name=addon_name,
        locator=PlaybackLocator(uri=uri, info_hash=info_hash, file_index=file_index),
        display_title=title,
        observed_at=_OBSERVED_AT,
        quality=quality,
        size_bytes=size_bytes,
        seeders=seeders,
        reliability=reliability,
        **overrides,
    )


# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def stream_factory() -> Any:
    """Factory for NormalizedStream records (see ``make_stream``)."""
    return make_stream


@pytest.fixture()
def generic_addon() -> AddonEndpoint:
    return AddonEndpoint(
        id="generic",
        display_name="Generic Streams",
        base_url="https://addon.example.com",
    )


@pytest.fixture()
def torrentio_addon() -> AddonEndpoint:
    return AddonEndpoint(
        id="torrentio",
        display_name="Torrentio",
        base_url="https://torrentio.strem.fun/manifest.json",
    )


@pytest.fixture()
def cinemeta_addon() -> AddonEndpoint:
    return AddonEndpoint(
        id="cinemeta", display_name="Cinemeta", base_url="https://v3-cinemeta.strem.io/"
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def app_config() -> AppConfig:
    """Config with fast retries and direct transport only."""
    return AppConfig.model_validate(
        {
            "environment": "test",
            "aggregation": {
                "retry_attempts": 1,
                "backoff_base_seconds": 0.0,
                "max_backoff_seconds": 0.0,
                "transports": ["direct"],
            },
        }
    )
