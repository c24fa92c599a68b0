"""Bounded retries with exponential backoff for one addon query."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from crumble.domain.entities.errors import AllStrategiesExhausted, TransientNetworkError

log = structlog.get_logger(__name__)

T = TypeVar("T")


class RetryOrchestrator:
    """Run an addon query up to ``attempts`` times.

    Only ``TransientNetworkError`` triggers another attempt; any other
    error propagates unchanged.  When every attempt failed transiently
    ``AllStrategiesExhausted`` is raised.
    """

    def __init__(
        self,
        *,
        attempts: int = 2,
        backoff_base: float = 1.0,
        max_backoff: float = 8.0,
    ) -> None:
        self._attempts = max(1, attempts)
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff

    def compute_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter for the zero-based *attempt*."""
        delay = self._backoff_base * (2**attempt)
        jitter = random.uniform(0, self._backoff_base)  # noqa: S311
        return min(delay + jitter, self._max_backoff)

    async def run(self, addon_id: str, operation: Callable[[], Awaitable[T]]) -> T:
        last_error: TransientNetworkError | None = None

        for attempt in range(self._attempts):
            try:
                return await operation()
            except TransientNetworkError as exc:
                last_error = exc

            if attempt + 1 == self._attempts:
                break

            delay = self.compute_delay(attempt)
            log.info(
                "addon_retry",
                addon_id=addon_id,
                attempt=attempt + 1,
                delay=round(delay, 2),
                error=str(last_error),
            )
            await asyncio.sleep(delay)

        assert last_error is not None
        raise AllStrategiesExhausted(addon_id, self._attempts, last_error)
