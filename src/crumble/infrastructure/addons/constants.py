"""Shared constants for addon requests."""

from __future__ import annotations

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

# Header set sent by the official desktop client.
STREMIO_USER_AGENT = "Stremio/4.4.142 (com.stremio.desktop)"
STREMIO_ORIGIN = "https://app.strem.io"

DEFAULT_CLIENT_TIMEOUT = 15.0

# Well-known title used by diagnostics (The Matrix, 1999).
PROBE_MEDIA_ID = "tt0133093"
PROBE_RELAY_TARGET = "https://v3-cinemeta.strem.io/manifest.json"

# Keys under which addons return their stream arrays.
STREAM_ARRAY_KEYS: tuple[str, ...] = ("streams", "results")
