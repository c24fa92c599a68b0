"""Reliability scoring and the total order over normalized streams."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping

from crumble.domain.entities.streams import NormalizedStream, QualityTier

_BASE_SCORE = 50
_HTTPS_BONUS = 10
_KNOWN_SIZE_BONUS = 5
_KNOWN_QUALITY_BONUS = 10

# (minimum exclusive seeders, bonus), checked top-down.
_SEEDER_BONUSES: tuple[tuple[int, int], ...] = ((50, 20), (10, 10), (0, 5))


class ReliabilityScorer:
    """Heuristic 0-100 confidence that a stream will actually play.

    ``addon_scores`` maps lower-case addon-name substrings to a bonus;
    the first matching entry wins.
    """

    def __init__(self, addon_scores: Mapping[str, int] | None = None) -> None:
        self._addon_scores = {k.lower(): v for k, v in (addon_scores or {}).items()}

    def addon_bonus(self, addon_name: str) -> int:
        name = addon_name.lower()
        for needle, bonus in self._addon_scores.items():
            if needle in name:
                return bonus
        return 0

    def score(
        self,
        *,
        addon_name: str,
        uri: str | None,
        seeders: int | None,
        size_bytes: int | None,
        quality: QualityTier,
    ) -> int:
        score = _BASE_SCORE + self.addon_bonus(addon_name)

        if uri and uri.startswith("https://"):
            score += _HTTPS_BONUS

        if seeders is not None:
            for threshold, bonus in _SEEDER_BONUSES:
                if seeders > threshold:
                    score += bonus
                    break

        if size_bytes is not None:
            score += _KNOWN_SIZE_BONUS
        if quality != QualityTier.UNKNOWN:
            score += _KNOWN_QUALITY_BONUS

        return max(0, min(100, score))


def rank_key(
    stream: NormalizedStream,
) -> tuple[int, int, int, float, str]:
    """Sort key: quality desc, reliability desc, seeders desc, size asc.

    Missing seeders sort below zero seeders and missing sizes sort last;
    the locator key breaks remaining ties.
    """
    seeders = stream.seeders if stream.seeders is not None else -1
    size = stream.size_bytes if stream.size_bytes is not None else math.inf
    return (
        -int(stream.quality),
        -stream.reliability,
        -seeders,
        size,
        stream.locator.sort_key,
    )


def rank_streams(streams: Iterable[NormalizedStream]) -> list[NormalizedStream]:
    return sorted(streams, key=rank_key)
