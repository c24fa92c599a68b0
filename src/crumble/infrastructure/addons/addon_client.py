"""Query a single addon: candidate URLs x transport strategies."""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from crumble.domain.entities.errors import InvalidResponseShape, TransientNetworkError
from crumble.domain.entities.streams import AddonEndpoint, NormalizedStream, StreamQuery
from crumble.domain.ports.transport import TransportStrategyPort
from crumble.infrastructure.addons.dialects import build_candidate_urls
from crumble.infrastructure.addons.normalizer import ResponseNormalizer

log = structlog.get_logger(__name__)


class AddonStreamClient:
    """Fetch and normalize one addon's streams for a query.

    URLs and transports are tried strictly in order; the first
    structurally valid payload wins, even if it holds no streams.

    Raises ``TransientNetworkError`` if any attempt failed for a
    retryable reason, else ``InvalidResponseShape``.
    """

    def __init__(
        self,
        *,
        transports: Sequence[TransportStrategyPort],
        normalizer: ResponseNormalizer,
    ) -> None:
        if not transports:
            raise ValueError("at least one transport strategy is required")
        self._transports = list(transports)
        self._normalizer = normalizer

    @property
    def transport_names(self) -> list[str]:
        return [t.name for t in self._transports]

    async def fetch_streams(
        self, addon: AddonEndpoint, query: StreamQuery
    ) -> list[NormalizedStream]:
        urls = build_candidate_urls(addon, query)
        transient: TransientNetworkError | None = None
        shape: InvalidResponseShape | None = None

        for url in urls:
            for transport in self._transports:
                try:
                    payload = await transport.fetch(url)
                except TransientNetworkError as exc:
                    transient = exc
                    log.debug(
                        "addon_attempt_failed",
                        addon_id=addon.id,
                        url=url,
                        transport=transport.name,
                        error=str(exc),
                    )
                    continue
                except InvalidResponseShape as exc:
                    shape = exc
                    log.debug(
                        "addon_invalid_response",
                        addon_id=addon.id,
                        url=url,
                        transport=transport.name,
                        error=str(exc),
                    )
                    continue

                streams = self._normalizer.normalize(
                    payload, addon, title_hint=query.title_hint
                )
                log.debug(
                    "addon_fetch_succeeded",
                    addon_id=addon.id,
                    url=url,
                    transport=transport.name,
                    streams=len(streams),
                )
                return streams

        if transient is not None:
            raise TransientNetworkError(
                f"all {len(urls)} url(s) failed for addon {addon.id!r}: {transient}"
            ) from transient
        if shape is not None:
            raise shape
        raise InvalidResponseShape(f"no candidate urls for addon {addon.id!r}")
