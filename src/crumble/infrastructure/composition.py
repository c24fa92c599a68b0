"""Composition root: wire config, HTTP client and engine state together."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
import structlog

from crumble.application.engine_state import EngineState
from crumble.application.use_cases.aggregate_streams import AggregateStreamsUseCase
from crumble.domain.ports.addon_source import AddonSourcePort
from crumble.domain.ports.id_resolver import IdResolverPort
from crumble.domain.ports.transport import TransportStrategyPort
from crumble.infrastructure.addons.addon_client import AddonStreamClient
from crumble.infrastructure.addons.diagnostics import AddonDiagnostics
from crumble.infrastructure.addons.normalizer import ResponseNormalizer
from crumble.infrastructure.addons.proxy_health import ProxyHealthTracker
from crumble.infrastructure.addons.ranking import ReliabilityScorer
from crumble.infrastructure.addons.retry import RetryOrchestrator
from crumble.infrastructure.addons.source import StaticAddonSource
from crumble.infrastructure.addons.transports import (
    DirectTransport,
    HeaderVariantTransport,
    ProxyTransport,
    ScriptTagTransport,
)
from crumble.infrastructure.cache.result_cache import InMemoryResultCache
from crumble.infrastructure.config.schema import AppConfig
from crumble.infrastructure.metadata.tmdb_resolver import (
    NullIdResolver,
    TmdbIdResolver,
)

log = structlog.get_logger(__name__)


@dataclass
class Engine:
    """Everything a caller needs, built once per process."""

    aggregate: AggregateStreamsUseCase
    diagnostics: AddonDiagnostics
    addon_source: AddonSourcePort
    state: EngineState


def create_http_client(config: AppConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=True,
    )


def create_state(config: AppConfig) -> EngineState:
    agg = config.aggregation
    return EngineState(
        proxy_health=ProxyHealthTracker(
            failure_threshold=agg.proxy_failure_threshold,
            cooldown_seconds=agg.proxy_cooldown_seconds,
        ),
        result_cache=InMemoryResultCache(default_ttl=agg.cache_ttl_seconds),
    )


def build_transports(
    config: AppConfig, http_client: httpx.AsyncClient, state: EngineState
) -> list[TransportStrategyPort]:
    """Instantiate the configured transport strategies, in configured order."""
    agg = config.aggregation
    out: list[TransportStrategyPort] = []
    for name in agg.transports:
        if name == "direct":
            out.append(DirectTransport(http_client, user_agent=config.http_user_agent))
        elif name == "proxy":
            out.append(
                ProxyTransport(
                    http_client, relays=agg.cors_relays, health=state.proxy_health
                )
            )
        elif name == "alternate_headers":
            out.append(HeaderVariantTransport(http_client))
        elif name == "script_tag":
            out.append(
                ScriptTagTransport(http_client, user_agent=config.http_user_agent)
            )
    return out


def build_id_resolver(
    config: AppConfig, http_client: httpx.AsyncClient
) -> IdResolverPort:
    if config.tmdb_api_key:
        return TmdbIdResolver(api_key=config.tmdb_api_key, http_client=http_client)
    log.info("tmdb_disabled", reason="no api key")
    return NullIdResolver()


def build_engine(
    config: AppConfig,
    http_client: httpx.AsyncClient,
    *,
    addon_source: AddonSourcePort | None = None,
    id_resolver: IdResolverPort | None = None,
    state: EngineState | None = None,
) -> Engine:
    agg = config.aggregation
    state = state or create_state(config)
    addon_source = addon_source or StaticAddonSource(
        a.to_endpoint() for a in config.addons
    )

    client = AddonStreamClient(
        transports=build_transports(config, http_client, state),
        normalizer=ResponseNormalizer(ReliabilityScorer(agg.addon_scores)),
    )
    retry = RetryOrchestrator(
        attempts=agg.retry_attempts,
        backoff_base=agg.backoff_base_seconds,
        max_backoff=agg.max_backoff_seconds,
    )
    use_case = AggregateStreamsUseCase(
        addon_source=addon_source,
        client=client,
        retry=retry,
        id_resolver=id_resolver or build_id_resolver(config, http_client),
        state=state,
        config=agg,
    )
    diagnostics = AddonDiagnostics(
        http_client, relays=agg.cors_relays, health=state.proxy_health
    )

    log.info(
        "engine_initialized",
        addons=len(addon_source.snapshot()),
        transports=client.transport_names,
        max_concurrent_addons=agg.max_concurrent_addons,
    )
    return Engine(
        aggregate=use_case,
        diagnostics=diagnostics,
        addon_source=addon_source,
        state=state,
    )


@asynccontextmanager
async def engine_lifespan(config: AppConfig) -> AsyncIterator[Engine]:
    """Open the shared HTTP client, yield a wired engine, close the client."""
    http_client = create_http_client(config)
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)
    try:
        yield build_engine(config, http_client)
    finally:
        await http_client.aclose()
        log.info("http_client_closed")
