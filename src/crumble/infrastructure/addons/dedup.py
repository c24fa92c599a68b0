"""Merge-time duplicate removal."""

from __future__ import annotations

from collections.abc import Iterable

from crumble.domain.entities.streams import NormalizedStream


def deduplicate(streams: Iterable[NormalizedStream]) -> list[NormalizedStream]:
    """Drop later duplicates; the first occurrence wins.

    Two streams are duplicates when they share a locator key (same URI,
    or same info hash and file index), or the same display title,
    quality and source addon.
    """
    seen_locators: set[str] = set()
    seen_labels: set[tuple[str, int, str]] = set()
    out: list[NormalizedStream] = []

    for stream in streams:
        keys = stream.locator.keys()
        label = (stream.display_title, int(stream.quality), stream.source_addon_id)
        if label in seen_labels or any(k in seen_locators for k in keys):
            continue
        seen_locators.update(keys)
        seen_labels.add(label)
        out.append(stream)

    return out
