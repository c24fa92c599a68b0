"""Stream aggregation use case.

media id -> cache check -> parallel addon queries (retried)
-> merge -> dedup -> rank -> cache write.

An empty merged result triggers exactly one more pass with the
alternate identifier from the id resolver.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Protocol

import structlog

from crumble.application.engine_state import EngineState
from crumble.domain.entities.errors import (
    AggregationError,
    AllStrategiesExhausted,
    InvalidQuery,
    ResolutionFailed,
)
from crumble.domain.entities.streams import (
    AddonEndpoint,
    MediaType,
    NormalizedStream,
    StreamQuery,
)
from crumble.domain.ports.addon_source import AddonSourcePort
from crumble.domain.ports.id_resolver import IdResolverPort
from crumble.infrastructure.addons.dedup import deduplicate
from crumble.infrastructure.addons.ranking import rank_streams
from crumble.infrastructure.addons.retry import RetryOrchestrator

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its dependencies.
# Infrastructure components satisfy these via structural subtyping.
# ---------------------------------------------------------------------------


class _AggregationConfig(Protocol):
    """Configuration values consumed by AggregateStreamsUseCase."""

    max_concurrent_addons: int
    cache_ttl_seconds: float
    deadline_seconds: float | None


class _AddonClient(Protocol):
    """Fetches one addon's normalized streams for a query."""

    async def fetch_streams(
        self, addon: AddonEndpoint, query: StreamQuery
    ) -> list[NormalizedStream]: ...


log = structlog.get_logger(__name__)


class AggregateStreamsUseCase:
    """Entry point of the aggregation engine.

    ``aggregate`` never raises: invalid queries, failing addons and
    resolver errors are logged and degrade to fewer (or zero) streams.
    """

    def __init__(
        self,
        *,
        addon_source: AddonSourcePort,
        client: _AddonClient,
        retry: RetryOrchestrator,
        id_resolver: IdResolverPort,
        state: EngineState,
        config: _AggregationConfig,
    ) -> None:
        self._addon_source = addon_source
        self._client = client
        self._retry = retry
        self._resolver = id_resolver
        self._state = state
        self._max_concurrent = max(1, config.max_concurrent_addons)
        self._cache_ttl = config.cache_ttl_seconds
        self._deadline = config.deadline_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def aggregate(
        self,
        media_type: MediaType,
        media_id: str,
        season: int | None = None,
        episode: int | None = None,
        title_hint: str | None = None,
    ) -> list[NormalizedStream]:
        """Return the ranked, de-duplicated streams for one title."""
        try:
            query = StreamQuery(
                media_type=media_type,
                media_id=media_id,
                season=season,
                episode=episode,
                title_hint=title_hint,
            )
        except InvalidQuery as exc:
            log.warning(
                "aggregate_invalid_query",
                media_type=media_type,
                media_id=media_id,
                error=str(exc),
            )
            return []

        try:
            return await self._aggregate(query)
        except Exception:
            log.exception("aggregate_failed", key=query.cache_key)
            return []

    async def _aggregate(self, query: StreamQuery) -> list[NormalizedStream]:
        metrics = self._state.metrics
        metrics.aggregations += 1

        cached = self._state.result_cache.get(query.cache_key)
        if cached is not None:
            metrics.record_cache(hit=True)
            log.debug("aggregate_cache_hit", key=query.cache_key, streams=len(cached))
            return list(cached)
        metrics.record_cache(hit=False)

        addons = [a for a in self._addon_source.snapshot() if a.enabled]
        if not addons:
            log.info("aggregate_no_enabled_addons", key=query.cache_key)
            return []

        loop = asyncio.get_running_loop()
        deadline_at = (
            loop.time() + self._deadline if self._deadline is not None else None
        )

        t0 = time.perf_counter_ns()
        streams, truncated = await self._run_pass(addons, query, deadline_at)

        if not streams and not truncated:
            alternate_id = await self._resolve_alternate(query)
            if alternate_id is not None and alternate_id != query.media_id:
                metrics.fallback_passes += 1
                log.info(
                    "aggregate_fallback_pass",
                    media_id=query.media_id,
                    alternate_id=alternate_id,
                )
                streams, truncated = await self._run_pass(
                    addons, query.with_media_id(alternate_id), deadline_at
                )

        if truncated:
            metrics.deadline_truncations += 1
            log.warning(
                "aggregate_deadline_exceeded",
                key=query.cache_key,
                deadline_seconds=self._deadline,
                streams=len(streams),
            )
        else:
            self._state.result_cache.put(query.cache_key, streams, ttl=self._cache_ttl)

        log.info(
            "aggregate_done",
            key=query.cache_key,
            addons=len(addons),
            streams=len(streams),
            duration_ms=round((time.perf_counter_ns() - t0) / 1_000_000, 1),
        )
        return list(streams)

    def invalidate(
        self,
        media_type: MediaType,
        media_id: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> bool:
        """Drop one cached result so the next call searches again."""
        try:
            query = StreamQuery(
                media_type=media_type, media_id=media_id, season=season, episode=episode
            )
        except InvalidQuery:
            return False
        return self._state.result_cache.invalidate(query.cache_key)

    def clear_cache(self) -> None:
        self._state.result_cache.clear()
        log.info("result_cache_cleared")

    def stats(self) -> dict[str, object]:
        return self._state.snapshot()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_pass(
        self,
        addons: Sequence[AddonEndpoint],
        query: StreamQuery,
        deadline_at: float | None,
    ) -> tuple[list[NormalizedStream], bool]:
        """Query all addons in parallel with bounded concurrency.

        Returns the ranked streams and whether the deadline cut the pass
        short.  Merge order follows the addon snapshot, so on duplicates
        the earlier addon wins regardless of completion order.
        """
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def _query_one(addon: AddonEndpoint) -> list[NormalizedStream]:
            async with semaphore:
                return await self._query_addon(addon, query)

        tasks = [
            asyncio.create_task(_query_one(addon), name=f"addon:{addon.id}")
            for addon in addons
        ]

        timeout = None
        if deadline_at is not None:
            timeout = max(0.0, deadline_at - asyncio.get_running_loop().time())

        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        merged: list[NormalizedStream] = []
        for task in tasks:
            if task in done and not task.cancelled():
                merged.extend(task.result())

        return rank_streams(deduplicate(merged)), bool(pending)

    async def _query_addon(
        self, addon: AddonEndpoint, query: StreamQuery
    ) -> list[NormalizedStream]:
        """Query one addon with retries, turning every failure into zero streams."""
        t0 = time.perf_counter_ns()
        success = False
        streams: list[NormalizedStream] = []
        try:
            streams = await self._retry.run(
                addon.id, lambda: self._client.fetch_streams(addon, query)
            )
            success = True
        except AllStrategiesExhausted as exc:
            log.warning(
                "addon_exhausted",
                addon_id=addon.id,
                attempts=exc.attempts,
                error=str(exc.last_error),
            )
        except AggregationError as exc:
            log.warning("addon_query_failed", addon_id=addon.id, error=str(exc))
        except Exception:
            log.warning("addon_query_error", addon_id=addon.id, exc_info=True)
        except BaseException:
            log.info("addon_query_cancelled", addon_id=addon.id)
            raise
        finally:
            self._state.metrics.record_addon_query(
                addon.id,
                time.perf_counter_ns() - t0,
                len(streams),
                success=success,
            )

        log.debug("addon_query_done", addon_id=addon.id, streams=len(streams))
        return streams

    async def _resolve_alternate(self, query: StreamQuery) -> str | None:
        try:
            return await self._resolver.resolve(query.media_type, query.media_id)
        except ResolutionFailed as exc:
            log.warning(
                "alternate_id_resolution_failed",
                media_id=query.media_id,
                error=str(exc),
            )
        except Exception:
            log.warning(
                "alternate_id_resolution_error", media_id=query.media_id, exc_info=True
            )
        return None
