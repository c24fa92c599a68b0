"""Tests for AddonDiagnostics and report helpers."""

from __future__ import annotations

import httpx
import pytest
import respx

from crumble.domain.entities import AddonEndpoint
from crumble.infrastructure.addons.diagnostics import (
    AddonDiagnostics,
    AddonHealth,
    HealthReport,
    RelayProbe,
    build_recommendations,
    extract_capabilities,
)
from crumble.infrastructure.addons.proxy_health import ProxyHealthTracker
from crumble.infrastructure.config.schema import CorsRelayConfig

_BASE = "https://addon.example.com"
_MANIFEST = f"{_BASE}/manifest.json"
_PROBE_STREAM = f"{_BASE}/stream/movie/tt0133093.json"

_RELAY_A = CorsRelayConfig(id="relay-a", prefix="https://relay-a.test/?url=")
_RELAY_B = CorsRelayConfig(id="relay-b", prefix="https://relay-b.test/?url=")


def _health(status: str, addon_id: str = "x") -> AddonHealth:
    return AddonHealth(addon_id=addon_id, name=addon_id, url=_BASE, status=status)


def _diagnostics(
    health: ProxyHealthTracker | None = None,
    relays: list[CorsRelayConfig] | None = None,
) -> AddonDiagnostics:
    return AddonDiagnostics(
        httpx.AsyncClient(),
        relays=relays or [],
        health=health or ProxyHealthTracker(),
    )


class TestExtractCapabilities:
    def test_resources_and_types(self) -> None:
        manifest = {
            "resources": ["catalog", {"name": "stream", "types": ["movie"]}],
            "types": ["movie", "series"],
        }
        assert extract_capabilities(manifest) == (
            "catalog",
            "stream",
            "movie",
            "series",
        )

    def test_garbage_manifest(self) -> None:
        assert extract_capabilities(["not", "a", "dict"]) == ()
        assert extract_capabilities({"resources": [42, {"name": 1}]}) == ()


class TestBuildRecommendations:
    def test_all_healthy_no_recommendations(self) -> None:
        recs = build_recommendations(
            [_health("healthy")], [RelayProbe(relay_id="a", working=True)]
        )
        assert recs == []

    def test_no_addons(self) -> None:
        recs = build_recommendations([], [])
        assert [r.title for r in recs] == ["No addons configured"]

    def test_unhealthy_and_all_unhealthy(self) -> None:
        recs = build_recommendations([_health("unhealthy")], [])
        titles = [r.title for r in recs]
        assert "Unhealthy addons detected" in titles
        assert "All addons unhealthy" in titles

    def test_degraded_only_counts_as_not_healthy(self) -> None:
        recs = build_recommendations([_health("degraded")], [])
        assert [r.level for r in recs] == ["error"]

    def test_no_working_relay(self) -> None:
        recs = build_recommendations(
            [_health("healthy")], [RelayProbe(relay_id="a", working=False)]
        )
        assert [r.title for r in recs] == ["CORS relay issues"]


class TestCheckAddon:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_healthy(self, generic_addon: AddonEndpoint) -> None:
        respx.get(_MANIFEST).respond(
            json={"resources": ["stream"], "types": ["movie"]}
        )
        respx.get(_PROBE_STREAM).respond(json={"streams": []})
        respx.options(_MANIFEST).respond(
            headers={"Access-Control-Allow-Origin": "*"}
        )

        result = await _diagnostics().check_addon(generic_addon)

        assert result.status == "healthy"
        assert result.errors == ()
        assert result.capabilities == ("stream", "movie")
        assert result.response_time_ms is not None

    @respx.mock
    @pytest.mark.asyncio()
    async def test_manifest_down_is_unhealthy(
        self, generic_addon: AddonEndpoint
    ) -> None:
        respx.get(_MANIFEST).respond(status_code=503)
        stream_route = respx.get(_PROBE_STREAM)

        result = await _diagnostics().check_addon(generic_addon)

        assert result.status == "unhealthy"
        assert "HTTP 503" in result.errors[0]
        assert not stream_route.called

    @respx.mock
    @pytest.mark.asyncio()
    async def test_manifest_network_error(self, generic_addon: AddonEndpoint) -> None:
        respx.get(_MANIFEST).mock(side_effect=httpx.ConnectError("refused"))
        result = await _diagnostics().check_addon(generic_addon)
        assert result.status == "unhealthy"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_missing_cors_and_stream_is_degraded(
        self, generic_addon: AddonEndpoint
    ) -> None:
        respx.get(_MANIFEST).respond(json={})
        respx.get(_PROBE_STREAM).respond(status_code=404)
        respx.options(_MANIFEST).respond(status_code=204)

        result = await _diagnostics().check_addon(generic_addon)

        assert result.status == "degraded"
        assert result.errors == (
            "stream endpoint not responding",
            "CORS headers missing",
        )


class TestProbeRelay:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_working_relay_records_success(self) -> None:
        respx.get(host="relay-a.test").respond(json={"id": "cinemeta"})
        health = ProxyHealthTracker(failure_threshold=1)
        health.record_failure("relay-a")
        assert health.is_eligible("relay-a") is False

        probe = await _diagnostics(health).probe_relay(_RELAY_A)

        assert probe.working is True
        assert health.is_eligible("relay-a") is True

    @respx.mock
    @pytest.mark.asyncio()
    async def test_failing_relay_records_failure(self) -> None:
        respx.get(host="relay-a.test").respond(status_code=502)
        health = ProxyHealthTracker(failure_threshold=1)

        probe = await _diagnostics(health).probe_relay(_RELAY_A)

        assert probe.working is False
        assert probe.error == "HTTP 502"
        assert health.is_eligible("relay-a") is False


class TestRun:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_report(self, generic_addon: AddonEndpoint) -> None:
        respx.get(_MANIFEST).respond(json={"resources": ["stream"]})
        respx.get(_PROBE_STREAM).respond(json={"streams": []})
        respx.options(_MANIFEST).respond(
            headers={"Access-Control-Allow-Origin": "*"}
        )
        respx.get(host="relay-a.test").respond(json={})
        respx.get(host="relay-b.test").mock(side_effect=httpx.ReadTimeout("slow"))

        report = await _diagnostics(relays=[_RELAY_A, _RELAY_B]).run([generic_addon])

        assert isinstance(report, HealthReport)
        assert report.healthy_addons == 1
        assert report.unhealthy_addons == 0
        assert [r.working for r in report.relays] == [True, False]

        payload = report.to_dict()
        assert payload["total_addons"] == 1
        assert payload["addons"][0]["id"] == "generic"
        assert payload["relays"][1]["id"] == "relay-b"
        assert payload["recommendations"] == []
