"""Addon dialects and candidate stream URLs.

Addons in the wild disagree on their stream paths.  Each dialect
lists the paths worth trying, most canonical first.
"""

from __future__ import annotations

from enum import Enum
from urllib.parse import quote

from crumble.domain.entities.streams import AddonEndpoint, StreamQuery


class AddonDialect(Enum):
    TORRENTIO = "torrentio"
    CINEMETA = "cinemeta"
    GENERIC = "generic"


_TORRENTIO_MOVIE_QUALITIES: tuple[str, ...] = ("1080p", "720p")
_TORRENTIO_SERIES_QUALITIES: tuple[str, ...] = ("1080p",)


def classify_dialect(addon: AddonEndpoint) -> AddonDialect:
    """Best-effort dialect guess from the addon's URL and display name."""
    haystack = f"{addon.base_url} {addon.display_name}".lower()
    if "torrentio" in haystack:
        return AddonDialect.TORRENTIO
    if "cinemeta" in haystack:
        return AddonDialect.CINEMETA
    return AddonDialect.GENERIC


def normalize_base_url(base_url: str) -> str:
    """Strip whitespace, a trailing ``/manifest.json`` and trailing slashes."""
    url = base_url.strip()
    if url.endswith("/manifest.json"):
        url = url[: -len("/manifest.json")]
    return url.rstrip("/")


def _stream_id(query: StreamQuery) -> str:
    media_id = quote(query.media_id, safe=":")
    if query.has_episode:
        return f"{media_id}:{query.season}:{query.episode}"
    return media_id


def canonical_stream_url(addon: AddonEndpoint, query: StreamQuery) -> str:
    """``{base}/stream/{type}/{id}[:{season}:{episode}].json``"""
    base = normalize_base_url(addon.base_url)
    return f"{base}/stream/{query.media_type}/{_stream_id(query)}.json"


def _torrentio_urls(base: str, query: StreamQuery) -> list[str]:
    sid = _stream_id(query)
    urls = [f"{base}/stream/{query.media_type}/{sid}.json"]
    if query.has_episode:
        urls.extend(
            f"{base}/stream/{query.media_type}/{sid}:{q}.json"
            for q in _TORRENTIO_SERIES_QUALITIES
        )
        urls.append(f"{base}/stream/tv/{sid}.json")
    else:
        urls.extend(
            f"{base}/stream/{query.media_type}/{sid}:{q}.json"
            for q in _TORRENTIO_MOVIE_QUALITIES
        )
    return urls


def _generic_urls(base: str, query: StreamQuery) -> list[str]:
    media_type = query.media_type
    media_id = quote(query.media_id, safe=":")
    urls = [
        f"{base}/stream/{media_type}/{_stream_id(query)}.json",
        f"{base}/streams/{media_type}/{media_id}.json",
        f"{base}/api/stream/{media_type}/{media_id}.json",
    ]
    if query.has_episode:
        s, e = query.season, query.episode
        urls.append(f"{base}/stream/{media_type}/{media_id}/{s}/{e}.json")
        urls.append(f"{base}/stream/{media_type}/{media_id}_{s}_{e}.json")
    return urls


def build_candidate_urls(addon: AddonEndpoint, query: StreamQuery) -> list[str]:
    """Ordered, de-duplicated URLs to try for *addon*."""
    base = normalize_base_url(addon.base_url)
    dialect = classify_dialect(addon)

    if dialect == AddonDialect.TORRENTIO:
        urls = _torrentio_urls(base, query)
    elif dialect == AddonDialect.CINEMETA:
        urls = [canonical_stream_url(addon, query)]
    else:
        urls = _generic_urls(base, query)

    return list(dict.fromkeys(urls))
