"""Per-relay circuit breaker for CORS relays.

When a relay accumulates ``failure_threshold`` consecutive failures the
breaker opens and the proxy transport stops routing through it.  After
``cooldown_seconds`` a single probe request is allowed (half-open).
If the probe succeeds the relay is eligible again; if it fails the
cooldown restarts.
"""

from __future__ import annotations

import time
from enum import Enum

import structlog

from crumble.domain.entities.streams import ProxyHealthRecord

log = structlog.get_logger(__name__)

# Minimum time a half-open probe claim is held before another caller may
# take it over.
_PROBE_LEASE_SECONDS = 30.0


class _State(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class ProxyHealthTracker:
    """Track consecutive failures per relay and decide eligibility.

    Not thread-safe; safe for single-threaded asyncio (no await between
    read and write of the same relay state).
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 2,
        cooldown_seconds: float = 300.0,
    ) -> None:
        self._threshold = failure_threshold
        self._cooldown = cooldown_seconds
        self._failures: dict[str, int] = {}
        self._states: dict[str, _State] = {}
        self._opened_at: dict[str, float] = {}
        self._checked_at: dict[str, float] = {}
        self._probe_started: dict[str, float] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_eligible(self, proxy_id: str) -> bool:
        """Return ``True`` if requests may be routed through *proxy_id*.

        - **CLOSED**: always eligible.
        - **OPEN**: skipped until the cooldown expires, then transitions
          to HALF_OPEN and allows a single probe.
        - **HALF_OPEN**: the first caller claims the probe; later callers
          are refused until it is settled by ``record_success`` or
          ``record_failure``.  A claim that is never settled lapses after
          the longer of the cooldown and ``_PROBE_LEASE_SECONDS``.
        """
        state = self._states.get(proxy_id, _State.CLOSED)

        if state == _State.CLOSED:
            return True

        if state == _State.OPEN:
            elapsed = time.monotonic() - self._opened_at.get(proxy_id, 0.0)
            if elapsed >= self._cooldown:
                self._states[proxy_id] = _State.HALF_OPEN
                log.info("proxy_half_open", proxy_id=proxy_id)
                return self._claim_probe(proxy_id)
            return False

        return self._claim_probe(proxy_id)

    def _claim_probe(self, proxy_id: str) -> bool:
        now = time.monotonic()
        started = self._probe_started.get(proxy_id)
        lease = max(self._cooldown, _PROBE_LEASE_SECONDS)
        if started is not None and now - started < lease:
            return False
        self._probe_started[proxy_id] = now
        return True

    def record_success(self, proxy_id: str) -> None:
        """A relay answered: reset its counter and restore eligibility."""
        if self._states.get(proxy_id, _State.CLOSED) != _State.CLOSED:
            log.info("proxy_recovered", proxy_id=proxy_id)
        self._failures.pop(proxy_id, None)
        self._states.pop(proxy_id, None)
        self._opened_at.pop(proxy_id, None)
        self._probe_started.pop(proxy_id, None)
        self._checked_at[proxy_id] = time.monotonic()

    def record_failure(self, proxy_id: str) -> None:
        """Record a failed relay request.

        Opens the breaker once the counter reaches the threshold.  In
        HALF_OPEN a single failure re-opens it for a fresh cooldown.
        """
        now = time.monotonic()
        self._checked_at[proxy_id] = now
        state = self._states.get(proxy_id, _State.CLOSED)
        count = self._failures.get(proxy_id, 0) + 1
        self._failures[proxy_id] = count

        if state == _State.HALF_OPEN:
            self._states[proxy_id] = _State.OPEN
            self._probe_started.pop(proxy_id, None)
            self._opened_at[proxy_id] = now
            log.warning("proxy_probe_failed", proxy_id=proxy_id, failures=count)
            return

        if count >= self._threshold and state == _State.CLOSED:
            self._states[proxy_id] = _State.OPEN
            self._opened_at[proxy_id] = now
            log.warning(
                "proxy_marked_ineligible",
                proxy_id=proxy_id,
                failures=count,
                cooldown_seconds=self._cooldown,
            )

    def state(self, proxy_id: str) -> str:
        """Return the current breaker state as a string (for diagnostics)."""
        return self._states.get(proxy_id, _State.CLOSED).value

    def record(self, proxy_id: str) -> ProxyHealthRecord:
        return ProxyHealthRecord(
            proxy_id=proxy_id,
            is_eligible=self.state(proxy_id) != _State.OPEN.value,
            consecutive_failures=self._failures.get(proxy_id, 0),
            last_checked_at=self._checked_at.get(proxy_id),
        )

    def records(self) -> list[ProxyHealthRecord]:
        """Snapshot of every relay seen so far, sorted by id."""
        names = set(self._failures) | set(self._states) | set(self._checked_at)
        return [self.record(n) for n in sorted(names)]

    def snapshot(self) -> dict[str, dict[str, object]]:
        """Return a diagnostic snapshot of all tracked relays."""
        return {
            r.proxy_id: {
                "state": self.state(r.proxy_id),
                "eligible": r.is_eligible,
                "failures": r.consecutive_failures,
            }
            for r in self.records()
        }
