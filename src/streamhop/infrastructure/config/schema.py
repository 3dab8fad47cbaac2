"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
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

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _normalize_path(value: Any) -> Path:
    """Expand ``~``; the path is not required to exist."""
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class ResolutionConfig(BaseModel):
    """Race, timeout and retry budget of a single ``resolve()`` call."""

    race_width: int = Field(
        default=2,
        ge=1,
        description="Provider attempts allowed to run concurrently.",
    )
    attempt_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Budget for one provider's whole hop chain + decode.",
    )
    deadline_seconds: float = Field(
        default=45.0,
        gt=0,
        description="Hard deadline for the whole resolution.",
    )
    retries_on_unavailable: int = Field(
        default=1,
        ge=0,
        description="Retries per provider on UpstreamUnavailable/timeout.",
    )
    default_expiry_seconds: int = Field(
        default=300,
        gt=0,
        description="Manifest lifetime assumed when the URL embeds no expiry.",
    )


class CircuitBreakerConfig(BaseModel):
    """Soft-disable policy for providers whose scheme drifted."""

    failure_threshold: int = Field(default=3, ge=1)
    window_seconds: float = Field(default=300.0, gt=0)
    cooldown_seconds: float = Field(default=600.0, gt=0)
    keystream_reset_after: int = Field(
        default=2,
        ge=1,
        description="Consecutive validation failures before a derived "
        "keystream is discarded.",
    )


class PlaybackConfig(BaseModel):
    proxy_url_template: Optional[str] = Field(
        default=None,
        description="Edge proxy URL template with '{url}' (and optional "
        "'{referer}', '{origin}', '{headers}') placeholders.",
    )

    @field_validator("proxy_url_template")
    @classmethod
    def _validate_template(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and "{url}" not in v:
            raise ValueError("playback.proxy_url_template must contain '{url}'")
        return v


class SubtitlesConfig(BaseModel):
    url_template: Optional[str] = Field(
        default=None,
        description="Subtitle search URL with '{content_id}', '{season}', "
        "'{episode}' placeholders. Disabled when unset.",
    )
    timeout_seconds: float = Field(default=5.0, gt=0)


class AppConfig(BaseModel):
    """Validated runtime configuration.

    Flat fields (``http_timeout_seconds``) also accept their sectioned YAML
    location (``http.timeout_seconds``); see ``load.py`` for layering.
    """

    # General
    app_name: str = Field(default="streamhop", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # Providers (YAML section: providers.*)
    provider_dir: Path = Field(
        default=Path("./providers"),
        validation_alias=AliasChoices(
            "provider_dir",
            AliasPath("providers", "provider_dir"),
        ),
        description="Directory containing provider YAML descriptors.",
    )
    disabled_providers: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "disabled_providers",
            AliasPath("providers", "disabled"),
        ),
        description="Provider keys force-disabled at startup.",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=8.0,
        gt=0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Per-hop HTTP timeout in seconds.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether HTTP client follows redirects.",
    )
    http_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
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

    # Result cache (YAML section: cache.*)
    cache_ttl_seconds: int = Field(
        default=180,
        ge=0,
        validation_alias=AliasChoices(
            "cache_ttl_seconds",
            AliasPath("cache", "ttl_seconds"),
        ),
        description="Result cache TTL in seconds (0 disables caching).",
    )
    cache_max_entries: int = Field(
        default=5000,
        ge=1,
        validation_alias=AliasChoices(
            "cache_max_entries",
            AliasPath("cache", "max_entries"),
        ),
        description="Maximum number of cached resolutions.",
    )

    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    circuit_breaker: CircuitBreakerConfig = Field(
        default_factory=CircuitBreakerConfig
    )
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    subtitles: SubtitlesConfig = Field(default_factory=SubtitlesConfig)

    @field_validator("provider_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("disabled_providers", mode="before")
    @classmethod
    def _split_disabled(cls, v: Any) -> Any:
        # ENV form: "a,b,c"
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        if self.resolution.attempt_timeout_seconds > self.resolution.deadline_seconds:
            raise ValueError(
                "resolution.attempt_timeout_seconds must not exceed deadline_seconds"
            )
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """Inverse of the YAML layout; loadable again via ``load_config``."""
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "providers": {
                "provider_dir": str(self.provider_dir),
                "disabled": list(self.disabled_providers),
            },
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
            },
            "resolution": self.resolution.model_dump(),
            "circuit_breaker": self.circuit_breaker.model_dump(),
            "cache": {
                "ttl_seconds": self.cache_ttl_seconds,
                "max_entries": self.cache_max_entries,
            },
            "playback": self.playback.model_dump(),
            "subtitles": self.subtitles.model_dump(),
            "logging": {"level": self.log_level, "format": self.log_format},
        }


class EnvOverrides(BaseSettings):
    """``STREAMHOP_*`` environment variables, all optional.

    Keys are the flat field names, e.g. ``STREAMHOP_RACE_WIDTH=3`` or
    ``STREAMHOP_DISABLED_PROVIDERS=vidlink,flixer``.
    """

    model_config = SettingsConfigDict(
        env_prefix="STREAMHOP_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    provider_dir: Optional[Path] = None
    # Comma-separated; split by AppConfig
    disabled_providers: Optional[str] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None

    race_width: Optional[int] = None
    attempt_timeout_seconds: Optional[float] = None
    deadline_seconds: Optional[float] = None
    retries_on_unavailable: Optional[int] = None
    default_expiry_seconds: Optional[int] = None

    breaker_failure_threshold: Optional[int] = None
    breaker_window_seconds: Optional[float] = None
    breaker_cooldown_seconds: Optional[float] = None
    keystream_reset_after: Optional[int] = None

    cache_ttl_seconds: Optional[int] = None
    cache_max_entries: Optional[int] = None

    playback_proxy_url_template: Optional[str] = None
    subtitles_url_template: Optional[str] = None
    subtitles_timeout_seconds: Optional[float] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    @field_validator("provider_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """Variables that are set, as a flat layer."""
        return self.model_dump(exclude_none=True)
