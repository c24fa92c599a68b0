"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from crumble.domain.entities.streams import AddonEndpoint
from crumble.infrastructure.addons.constants import DEFAULT_USER_AGENT

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
TransportName = Literal["direct", "proxy", "alternate_headers", "script_tag"]
EnvelopeFormat = Literal["raw", "contents"]


class CorsRelayConfig(BaseModel):
    """One third-party CORS relay.

    The target URL is percent-encoded and appended to ``prefix``.
    """

    id: str
    prefix: str
    envelope: EnvelopeFormat = Field(
        default="raw",
        description="'contents' when the relay wraps the body as {contents: '<json>'}.",
    )


def _default_relays() -> list[CorsRelayConfig]:
    return [
        CorsRelayConfig(id="corsproxy", prefix="https://corsproxy.io/?"),
        CorsRelayConfig(
            id="htmldriven", prefix="https://cors-proxy.htmldriven.com/?url="
        ),
        CorsRelayConfig(
            id="allorigins",
            prefix="https://api.allorigins.win/get?url=",
            envelope="contents",
        ),
        CorsRelayConfig(id="cors_sh", prefix="https://proxy.cors.sh/"),
    ]


class AddonConfig(BaseModel):
    """Statically configured addon endpoint."""

    id: str
    name: str
    url: str
    enabled: bool = True

    def to_endpoint(self) -> AddonEndpoint:
        return AddonEndpoint(
            id=self.id,
            display_name=self.name,
            base_url=self.url,
            enabled=self.enabled,
        )


class AggregationConfig(BaseModel):
    """Knobs for the aggregation engine.

    All values configurable via YAML (aggregation section) or ENV vars.
    """

    retry_attempts: int = Field(
        default=2,
        description="Attempts per addon (first try included).",
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        description="Base delay for exponential backoff between attempts.",
    )
    max_backoff_seconds: float = Field(
        default=8.0,
        description="Upper bound for a single backoff delay.",
    )
    max_concurrent_addons: int = Field(
        default=2,
        description="Max addon queries in flight at once.",
    )
    cache_ttl_seconds: float = Field(
        default=300.0,
        description="TTL for cached aggregation results (seconds).",
    )
    deadline_seconds: Optional[float] = Field(
        default=None,
        description="Optional budget for a whole aggregate() call. None = unbounded.",
    )
    transports: list[TransportName] = Field(
        default_factory=lambda: ["direct", "proxy", "alternate_headers", "script_tag"],
        description="Transport strategies in the order they are attempted.",
    )
    addon_scores: dict[str, int] = Field(
        default={
            "torrentio": 25,
            "cinemeta": 20,
        },
        description="Reliability bonus by addon-name substring.",
    )
    proxy_failure_threshold: int = Field(
        default=2,
        description="Consecutive failures before a CORS relay is skipped.",
    )
    proxy_cooldown_seconds: float = Field(
        default=300.0,
        description="Seconds before an ineligible relay gets one probe request.",
    )
    cors_relays: list[CorsRelayConfig] = Field(default_factory=_default_relays)

    @field_validator(
        "retry_attempts", "max_concurrent_addons", "proxy_failure_threshold"
    )
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator(
        "cache_ttl_seconds", "backoff_base_seconds", "max_backoff_seconds"
    )
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("deadline_seconds")
    @classmethod
    def _validate_deadline(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("deadline_seconds must be > 0")
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/aggregation/addons).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="crumble", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Per-request timeout in seconds for addon and relay calls.",
    )
    http_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="Browser-like User-Agent for direct addon requests.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # TMDB API key (enables alternate-id fallback)
    tmdb_api_key: str | None = Field(
        default=None,
        description="TMDB API key for IMDb <-> TMDB id translation.",
    )

    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)

    addons: list[AddonConfig] = Field(default_factory=list)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Supported env var examples (flat, explicit):
    - CRUMBLE_HTTP_TIMEOUT_SECONDS
    - CRUMBLE_LOG_LEVEL
    - CRUMBLE_CACHE_TTL_SECONDS
    - CRUMBLE_TMDB_API_KEY
    """

    model_config = SettingsConfigDict(
        env_prefix="CRUMBLE_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    retry_attempts: Optional[int] = None
    max_concurrent_addons: Optional[int] = None
    cache_ttl_seconds: Optional[float] = None
    deadline_seconds: Optional[float] = None

    tmdb_api_key: Optional[str] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
