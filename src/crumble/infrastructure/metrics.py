"""Zero-impact in-memory aggregation metrics.

All counters are plain Python integers manipulated inside the single-threaded
async event loop, without locks or I/O.

``time.perf_counter_ns()`` is used for timing (monotonic, nanosecond
resolution, near-zero overhead).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class AddonStats:
    """Accumulated statistics for a single addon."""

    queries: int = 0
    successes: int = 0
    failures: int = 0
    total_streams: int = 0
    total_duration_ns: int = 0

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-serializable summary."""
        avg_ms = (
            round(self.total_duration_ns / self.queries / 1_000_000, 1)
            if self.queries
            else 0.0
        )
        return {
            "queries": self.queries,
            "successes": self.successes,
            "failures": self.failures,
            "total_streams": self.total_streams,
            "avg_duration_ms": avg_ms,
        }


@dataclass
class AggregationMetrics:
    """Central in-memory metrics for the aggregation engine."""

    _addons: dict[str, AddonStats] = field(default_factory=dict)
    cache_hits: int = 0
    cache_misses: int = 0
    aggregations: int = 0
    fallback_passes: int = 0
    deadline_truncations: int = 0
    _start_ns: int = field(default_factory=time.perf_counter_ns)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_addon_query(
        self,
        addon_id: str,
        duration_ns: int,
        stream_count: int,
        *,
        success: bool,
    ) -> None:
        """Record one addon query (all retries included)."""
        stats = self._addons.get(addon_id)
        if stats is None:
            stats = AddonStats()
            self._addons[addon_id] = stats

        stats.queries += 1
        stats.total_duration_ns += duration_ns

        if success:
            stats.successes += 1
            stats.total_streams += stream_count
        else:
            stats.failures += 1

    def record_cache(self, *, hit: bool) -> None:
        if hit:
            self.cache_hits += 1
        else:
            self.cache_misses += 1

    def addon(self, addon_id: str) -> AddonStats:
        return self._addons.get(addon_id, AddonStats())

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-serializable snapshot of all metrics."""
        uptime_ns = time.perf_counter_ns() - self._start_ns
        uptime_s = round(uptime_ns / 1_000_000_000, 1)

        return {
            "uptime_seconds": uptime_s,
            "aggregations": self.aggregations,
            "cache": {"hits": self.cache_hits, "misses": self.cache_misses},
            "fallback_passes": self.fallback_passes,
            "deadline_truncations": self.deadline_truncations,
            "addons": {
                name: stats.snapshot() for name, stats in sorted(self._addons.items())
            },
        }
