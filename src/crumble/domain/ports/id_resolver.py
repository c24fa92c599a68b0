"""Port for alternate-identifier lookups."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from crumble.domain.entities.streams import MediaType


@runtime_checkable
class IdResolverPort(Protocol):
    """Translate a media id into the same title's id in another catalog."""

    async def resolve(self, media_type: MediaType, primary_id: str) -> str | None:
        """Return the alternate id, or None when the catalog has no match.

        Implementations may raise ``ResolutionFailed`` when the lookup
        itself could not be completed.
        """
        ...
