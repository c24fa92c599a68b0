"""Process-wide mutable state of the aggregation engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from crumble.domain.ports.result_cache import ResultCachePort
from crumble.infrastructure.addons.proxy_health import ProxyHealthTracker
from crumble.infrastructure.cache.result_cache import InMemoryResultCache
from crumble.infrastructure.metrics import AggregationMetrics


@dataclass
class EngineState:
    """Shared state injected into the use case, transports and diagnostics.

    One instance per process (or per test).  Nothing here is global.
    """

    proxy_health: ProxyHealthTracker = field(default_factory=ProxyHealthTracker)
    result_cache: ResultCachePort = field(default_factory=InMemoryResultCache)
    metrics: AggregationMetrics = field(default_factory=AggregationMetrics)

    def snapshot(self) -> dict[str, object]:
        """JSON-serializable view of metrics, cache size and relay health."""
        return {
            "metrics": self.metrics.snapshot(),
            "cache_entries": len(self.result_cache),
            "proxies": self.proxy_health.snapshot(),
        }
