"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

from crumble.infrastructure.addons.constants import (
    DEFAULT_CLIENT_TIMEOUT,
    DEFAULT_USER_AGENT,
)

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "crumble",
    "environment": "dev",
    "http": {
        "timeout_seconds": DEFAULT_CLIENT_TIMEOUT,
        "user_agent": DEFAULT_USER_AGENT,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "aggregation": {
        "retry_attempts": 2,
        "backoff_base_seconds": 1.0,
        "max_backoff_seconds": 8.0,
        "max_concurrent_addons": 2,
        "cache_ttl_seconds": 300.0,
        "deadline_seconds": None,
        "transports": ["direct", "proxy", "alternate_headers", "script_tag"],
        "proxy_failure_threshold": 2,
        "proxy_cooldown_seconds": 300.0,
    },
    "addons": [],
}
