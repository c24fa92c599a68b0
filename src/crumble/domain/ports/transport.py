"""Port for addon request mechanisms."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TransportStrategyPort(Protocol):
    """One way of fetching an addon URL.

    ``fetch`` returns the decoded, structurally valid payload (a mapping
    holding a list under ``streams`` or ``results``) and raises
    ``TransientNetworkError`` or ``InvalidResponseShape`` otherwise.
    """

    name: str

    async def fetch(self, url: str) -> dict[str, Any]: ...
