from __future__ import annotations

from .load import load_config
from .schema import (
    AddonConfig,
    AggregationConfig,
    AppConfig,
    CorsRelayConfig,
    EnvOverrides,
)

__all__ = [
    "AddonConfig",
    "AggregationConfig",
    "AppConfig",
    "CorsRelayConfig",
    "EnvOverrides",
    "load_config",
]
