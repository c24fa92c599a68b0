"""Health checks for configured addons and CORS relays."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

import httpx
import structlog

from crumble.domain.entities.streams import AddonEndpoint, StreamQuery
from crumble.infrastructure.addons.constants import PROBE_MEDIA_ID, PROBE_RELAY_TARGET
from crumble.infrastructure.addons.dialects import (
    build_candidate_urls,
    normalize_base_url,
)
from crumble.infrastructure.addons.proxy_health import ProxyHealthTracker
from crumble.infrastructure.addons.transports import ProxyTransport
from crumble.infrastructure.config.schema import CorsRelayConfig

log = structlog.get_logger(__name__)

HealthStatus = Literal["healthy", "degraded", "unhealthy"]
RecommendationLevel = Literal["info", "warning", "error"]


@dataclass(frozen=True)
class AddonHealth:
    addon_id: str
    name: str
    url: str
    status: HealthStatus
    response_time_ms: float | None = None
    errors: tuple[str, ...] = ()
    capabilities: tuple[str, ...] = ()
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class RelayProbe:
    relay_id: str
    working: bool
    error: str | None = None


@dataclass(frozen=True)
class Recommendation:
    level: RecommendationLevel
    title: str
    description: str


@dataclass(frozen=True)
class HealthReport:
    addons: tuple[AddonHealth, ...]
    relays: tuple[RelayProbe, ...]
    recommendations: tuple[Recommendation, ...]

    @property
    def healthy_addons(self) -> int:
        return sum(1 for a in self.addons if a.status == "healthy")

    @property
    def unhealthy_addons(self) -> int:
        return sum(1 for a in self.addons if a.status == "unhealthy")

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_addons": len(self.addons),
            "healthy_addons": self.healthy_addons,
            "unhealthy_addons": self.unhealthy_addons,
            "addons": [
                {
                    "id": a.addon_id,
                    "name": a.name,
                    "url": a.url,
                    "status": a.status,
                    "response_time_ms": a.response_time_ms,
                    "errors": list(a.errors),
                    "capabilities": list(a.capabilities),
                    "checked_at": a.checked_at.isoformat(),
                }
                for a in self.addons
            ],
            "relays": [
                {"id": r.relay_id, "working": r.working, "error": r.error}
                for r in self.relays
            ],
            "recommendations": [
                {"level": r.level, "title": r.title, "description": r.description}
                for r in self.recommendations
            ],
        }


def extract_capabilities(manifest: Any) -> tuple[str, ...]:
    """Resource names and content types advertised by a manifest."""
    if not isinstance(manifest, dict):
        return ()
    caps: list[str] = []
    for resource in manifest.get("resources") or []:
        if isinstance(resource, str):
            caps.append(resource)
        elif isinstance(resource, dict) and isinstance(resource.get("name"), str):
            caps.append(resource["name"])
    caps.extend(t for t in manifest.get("types") or [] if isinstance(t, str))
    return tuple(dict.fromkeys(caps))


def build_recommendations(
    addons: Sequence[AddonHealth], relays: Sequence[RelayProbe]
) -> list[Recommendation]:
    out: list[Recommendation] = []
    unhealthy = sum(1 for a in addons if a.status == "unhealthy")
    healthy = sum(1 for a in addons if a.status == "healthy")

    if unhealthy:
        out.append(
            Recommendation(
                level="warning",
                title="Unhealthy addons detected",
                description=(
                    f"{unhealthy} addon(s) are not responding properly. "
                    "Consider removing or replacing them."
                ),
            )
        )
    if not addons:
        out.append(
            Recommendation(
                level="info",
                title="No addons configured",
                description="Add a stream addon such as Torrentio to the addons list.",
            )
        )
    if relays and not any(r.working for r in relays):
        out.append(
            Recommendation(
                level="warning",
                title="CORS relay issues",
                description="No working CORS relay found; proxy transport is unusable.",
            )
        )
    if addons and healthy == 0:
        out.append(
            Recommendation(
                level="error",
                title="All addons unhealthy",
                description="None of the configured addons passed every check.",
            )
        )
    return out


class AddonDiagnostics:
    """Probe addons (manifest, stream endpoint, CORS) and CORS relays."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        relays: Sequence[CorsRelayConfig],
        health: ProxyHealthTracker,
    ) -> None:
        self._http = http_client
        self._relays = list(relays)
        self._health = health

    async def _check_manifest(
        self, base: str
    ) -> tuple[bool, float, tuple[str, ...], str | None]:
        t0 = time.perf_counter()
        try:
            resp = await self._http.get(
                f"{base}/manifest.json", headers={"Accept": "application/json"}
            )
            elapsed_ms = round((time.perf_counter() - t0) * 1000, 1)
            if not resp.is_success:
                return False, elapsed_ms, (), f"HTTP {resp.status_code}"
            return True, elapsed_ms, extract_capabilities(resp.json()), None
        except (httpx.HTTPError, ValueError) as exc:
            elapsed_ms = round((time.perf_counter() - t0) * 1000, 1)
            return False, elapsed_ms, (), str(exc) or type(exc).__name__

    async def _check_stream_endpoint(self, addon: AddonEndpoint) -> bool:
        query = StreamQuery(media_type="movie", media_id=PROBE_MEDIA_ID)
        url = build_candidate_urls(addon, query)[0]
        try:
            resp = await self._http.get(url, headers={"Accept": "application/json"})
        except httpx.HTTPError:
            log.debug("diagnostics_stream_probe_failed", addon_id=addon.id, url=url)
            return False
        return resp.is_success

    async def _check_cors(self, base: str) -> bool:
        try:
            resp = await self._http.options(f"{base}/manifest.json")
        except httpx.HTTPError:
            return False
        return resp.headers.get("access-control-allow-origin") is not None

    async def check_addon(self, addon: AddonEndpoint) -> AddonHealth:
        base = normalize_base_url(addon.base_url)
        ok, elapsed_ms, capabilities, error = await self._check_manifest(base)
        if not ok:
            return AddonHealth(
                addon_id=addon.id,
                name=addon.display_name,
                url=base,
                status="unhealthy",
                response_time_ms=elapsed_ms,
                errors=(f"manifest not accessible: {error}",),
            )

        errors: list[str] = []
        if not await self._check_stream_endpoint(addon):
            errors.append("stream endpoint not responding")
        if not await self._check_cors(base):
            errors.append("CORS headers missing")

        return AddonHealth(
            addon_id=addon.id,
            name=addon.display_name,
            url=base,
            status="degraded" if errors else "healthy",
            response_time_ms=elapsed_ms,
            errors=tuple(errors),
            capabilities=capabilities,
        )

    async def probe_relay(self, relay: CorsRelayConfig) -> RelayProbe:
        """Fetch a known URL through *relay* and feed the outcome to the tracker."""
        url = ProxyTransport.relay_url(relay, PROBE_RELAY_TARGET)
        try:
            resp = await self._http.get(url)
        except httpx.HTTPError as exc:
            self._health.record_failure(relay.id)
            return RelayProbe(
                relay_id=relay.id, working=False, error=str(exc) or type(exc).__name__
            )

        if not resp.is_success:
            self._health.record_failure(relay.id)
            return RelayProbe(
                relay_id=relay.id, working=False, error=f"HTTP {resp.status_code}"
            )
        self._health.record_success(relay.id)
        return RelayProbe(relay_id=relay.id, working=True)

    async def probe_relays(self) -> list[RelayProbe]:
        return list(await asyncio.gather(*(self.probe_relay(r) for r in self._relays)))

    async def run(self, addons: Sequence[AddonEndpoint]) -> HealthReport:
        addon_results = await asyncio.gather(*(self.check_addon(a) for a in addons))
        relay_results = await self.probe_relays()
        report = HealthReport(
            addons=tuple(addon_results),
            relays=tuple(relay_results),
            recommendations=tuple(build_recommendations(addon_results, relay_results)),
        )
        log.info(
            "diagnostics_done",
            total_addons=len(report.addons),
            healthy=report.healthy_addons,
            unhealthy=report.unhealthy_addons,
            working_relays=sum(1 for r in relay_results if r.working),
        )
        return report
