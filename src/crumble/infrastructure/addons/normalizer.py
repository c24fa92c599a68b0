"""Convert raw addon payloads into ``NormalizedStream`` records.

Addon payloads are untrusted: every field is optional and may carry the
wrong type.  Quality, size, seeders and language are pulled out of the
free-text ``title``/``description``/``name`` labels with regular
expressions; guessit is the secondary extractor for quality and
language when the labels carry a scene release name.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

import structlog
from guessit import guessit
from guessit.api import GuessitException

from crumble.domain.entities.streams import (
    AddonEndpoint,
    NormalizedStream,
    PlaybackLocator,
    QualityTier,
    SourceTag,
)
from crumble.infrastructure.addons.constants import STREAM_ARRAY_KEYS
from crumble.infrastructure.addons.ranking import ReliabilityScorer
from crumble.infrastructure.common.parsers import find_size_in_text

log = structlog.get_logger(__name__)

# --- Quality ---

_QUALITY_PATTERNS: tuple[tuple[re.Pattern[str], QualityTier], ...] = (
    (re.compile(r"\b(4k|2160p|uhd)\b"), QualityTier.UHD_4K),
    (re.compile(r"\b(1440p|qhd)\b"), QualityTier.P1440),
    (re.compile(r"\b(1080p|fhd|full\s*hd)\b"), QualityTier.P1080),
    (re.compile(r"\b(720p|hd)\b"), QualityTier.P720),
    (re.compile(r"\b(480p|dvd)\b"), QualityTier.P480),
    (re.compile(r"\b(360p)\b"), QualityTier.P360),
    (re.compile(r"\b(240p)\b"), QualityTier.P240),
)

_SCREEN_SIZE_TO_QUALITY: dict[str, QualityTier] = {
    "4320p": QualityTier.UHD_4K,
    "2160p": QualityTier.UHD_4K,
    "1440p": QualityTier.P1440,
    "1080p": QualityTier.P1080,
    "1080i": QualityTier.P1080,
    "720p": QualityTier.P720,
    "576p": QualityTier.P480,
    "540p": QualityTier.P480,
    "480p": QualityTier.P480,
    "480i": QualityTier.P480,
    "360p": QualityTier.P360,
    "240p": QualityTier.P240,
}

# --- Seeders (torrent locators only) ---

_SEEDER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(\d+)\s*(?:seeders?|seeds?|👥|S:)", re.IGNORECASE),
    re.compile(r"(?:👤|👥|seeders?:|seeds?:)\s*(\d+)", re.IGNORECASE),
)

# --- Language ---

_LANGUAGE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(english|eng)\b|🇬🇧|🇺🇸"), "en"),
    (re.compile(r"\b(spanish|español|esp)\b|🇪🇸|🇲🇽"), "es"),
    (re.compile(r"\b(french|français|vff|truefrench)\b|🇫🇷"), "fr"),
    (re.compile(r"\b(german|deutsch|ger)\b|🇩🇪"), "de"),
    (re.compile(r"\b(italian|italiano|ita)\b|🇮🇹"), "it"),
)

_INFO_HASH_IN_MAGNET = re.compile(r"urn:btih:([0-9a-z]+)", re.IGNORECASE)


def _text_field(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else ""


def _label_text(raw: Mapping[str, Any]) -> str:
    return " ".join(_text_field(raw, key) for key in ("title", "description", "name"))


def _release_name(raw: Mapping[str, Any]) -> str | None:
    """First line of the title (or description), where addons put the release name."""
    for key in ("title", "description"):
        for line in _text_field(raw, key).splitlines():
            if line.strip():
                return line.strip()
    return None


def _guess(release_name: str) -> Mapping[str, Any]:
    try:
        return guessit(release_name)
    except GuessitException:
        log.debug("guessit_failed", release_name=release_name)
        return {}


def _language_code(lang_obj: object) -> str | None:
    """Extract a 2-letter language code from a guessit Language object."""
    alpha2 = getattr(lang_obj, "alpha2", None)
    if alpha2:
        return str(alpha2).lower()
    return None


# --- Public extractors ---


def extract_quality(text: str, release_name: str | None = None) -> QualityTier:
    """Best quality keyword in *text*, else guessit on the release name."""
    lowered = text.lower()
    for pattern, tier in _QUALITY_PATTERNS:
        if pattern.search(lowered):
            return tier

    if release_name:
        screen_size = _guess(release_name).get("screen_size")
        if isinstance(screen_size, str) and screen_size in _SCREEN_SIZE_TO_QUALITY:
            return _SCREEN_SIZE_TO_QUALITY[screen_size]

    return QualityTier.UNKNOWN


def extract_seeders(text: str) -> int | None:
    for pattern in _SEEDER_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def extract_language(text: str, release_name: str | None = None) -> str | None:
    """Two-letter lower-case language code, or None."""
    lowered = text.lower()
    for pattern, code in _LANGUAGE_PATTERNS:
        if pattern.search(lowered):
            return code

    if release_name:
        langs = _guess(release_name).get("language")
        if langs:
            lang_obj = langs[0] if isinstance(langs, list) else langs
            return _language_code(lang_obj)

    return None


def source_tag_for(locator: PlaybackLocator) -> SourceTag:
    uri = locator.uri or ""
    if uri.startswith("magnet:"):
        return "torrent"
    lowered = uri.lower()
    if ".m3u8" in lowered:
        return "hls"
    if ".mp4" in lowered:
        return "mp4"
    if ".mkv" in lowered:
        return "mkv"
    if locator.info_hash:
        return "torrent"
    return "unknown"


def _usable_uri(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    uri = value.strip()
    if uri.startswith("magnet:"):
        return uri
    parts = urlsplit(uri)
    if parts.scheme in ("http", "https") and parts.netloc:
        return uri
    return None


def _file_index(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value >= 0:
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def build_locator(raw: Mapping[str, Any]) -> PlaybackLocator | None:
    """Locator for a raw candidate, or None when it has nothing playable."""
    uri = _usable_uri(raw.get("url"))

    info_hash: str | None = None
    raw_hash = raw.get("infoHash")
    if isinstance(raw_hash, str) and raw_hash.strip():
        info_hash = raw_hash.strip().lower()
    elif uri and uri.startswith("magnet:"):
        match = _INFO_HASH_IN_MAGNET.search(uri)
        if match:
            info_hash = match.group(1).lower()

    if uri is None and info_hash is None:
        return None

    file_index = _file_index(raw.get("fileIdx")) if info_hash else None
    return PlaybackLocator(uri=uri, info_hash=info_hash, file_index=file_index)


class ResponseNormalizer:
    """Turn one addon payload into scored ``NormalizedStream`` records."""

    def __init__(self, scorer: ReliabilityScorer) -> None:
        self._scorer = scorer

    def normalize_candidate(
        self,
        raw: Mapping[str, Any],
        addon: AddonEndpoint,
        *,
        title_hint: str | None = None,
        observed_at: datetime | None = None,
    ) -> NormalizedStream | None:
        locator = build_locator(raw)
        if locator is None:
            return None

        text = _label_text(raw)
        release_name = _release_name(raw)
        quality = extract_quality(text, release_name)
        size_bytes = find_size_in_text(text)
        seeders = extract_seeders(text) if locator.is_torrent else None

        display_title = (
            _text_field(raw, "title").strip()
            or (title_hint or "").strip()
            or _text_field(raw, "name").strip()
            or "Unknown"
        )

        return NormalizedStream(
            source_addon_id=addon.id,
            source_addon_name=addon.display_name,
            locator=locator,
            display_title=display_title,
            observed_at=observed_at or datetime.now(timezone.utc),
            quality=quality,
            size_bytes=size_bytes,
            seeders=seeders,
            language=extract_language(text, release_name),
            source_tag=source_tag_for(locator),
            reliability=self._scorer.score(
                addon_name=addon.display_name,
                uri=locator.uri,
                seeders=seeders,
                size_bytes=size_bytes,
                quality=quality,
            ),
        )

    def normalize(
        self,
        payload: Mapping[str, Any],
        addon: AddonEndpoint,
        *,
        title_hint: str | None = None,
    ) -> list[NormalizedStream]:
        """Normalize every usable candidate in *payload*, preserving order."""
        candidates: list[Any] = []
        for key in STREAM_ARRAY_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                candidates = value
                break

        observed_at = datetime.now(timezone.utc)
        out: list[NormalizedStream] = []
        dropped = 0
        for raw in candidates:
            stream = (
                self.normalize_candidate(
                    raw, addon, title_hint=title_hint, observed_at=observed_at
                )
                if isinstance(raw, Mapping)
                else None
            )
            if stream is None:
                dropped += 1
                continue
            out.append(stream)

        log.debug(
            "addon_payload_normalized",
            addon_id=addon.id,
            candidates=len(candidates),
            streams=len(out),
            dropped=dropped,
        )
        return out
