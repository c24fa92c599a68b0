"""Port for the addon-management collaborator."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from crumble.domain.entities.streams import AddonEndpoint


@runtime_checkable
class AddonSourcePort(Protocol):
    """Read-only access to the installed addons.

    The aggregation engine reads one snapshot per query and never
    mutates it; installing and removing addons happens elsewhere.
    """

    def snapshot(self) -> Sequence[AddonEndpoint]:
        """Return all installed addons, enabled or not."""
        ...
