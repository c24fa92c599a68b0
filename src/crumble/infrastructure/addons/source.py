"""Configuration-backed addon source."""

from __future__ import annotations

from collections.abc import Iterable

from crumble.domain.entities.streams import AddonEndpoint


class StaticAddonSource:
    """Implements ``AddonSourcePort`` over a fixed list of endpoints."""

    def __init__(self, addons: Iterable[AddonEndpoint] = ()) -> None:
        self._addons = tuple(addons)

    def snapshot(self) -> tuple[AddonEndpoint, ...]:
        return self._addons
