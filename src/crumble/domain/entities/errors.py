from __future__ import annotations


class AggregationError(Exception):
    """Base error for stream aggregation."""


class InvalidQuery(AggregationError):
    pass


class TransientNetworkError(AggregationError):
    """Timeout, connection failure or non-2xx response. Retryable."""


class InvalidResponseShape(AggregationError):
    """Body is not JSON or lacks a ``streams``/``results`` array."""


class AllStrategiesExhausted(AggregationError):
    """Every URL and transport failed for one addon, retries included."""

    def __init__(self, addon_id: str, attempts: int, last_error: Exception) -> None:
        super().__init__(
            f"addon {addon_id!r} exhausted after {attempts} attempt(s): {last_error}"
        )
        self.addon_id = addon_id
        self.attempts = attempts
        self.last_error = last_error


class ResolutionFailed(AggregationError):
    """Alternate-identifier lookup could not be completed."""
