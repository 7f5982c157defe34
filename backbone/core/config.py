"""Centralized, immutable configuration loaded from the environment.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support. Settings are loaded once by the lifecycle controller and are frozen
afterwards, so they can be shared by every request without locking.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for grouped settings
- **Fail fast**: Missing mandatory secrets abort construction
- **Immutability**: Every settings model is frozen after validation

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

type Environment = Literal["development", "staging", "production"]
type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    log_level: LogLevel | None = Field(
        default=None,
        description="Logging level. Defaults to DEBUG in development, INFO elsewhere.",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Derived from the environment if not set.",
    )
    excluded_paths: tuple[str, ...] = Field(
        default=("/health",),
        description="Paths to exclude from request logging",
    )
    slow_request_threshold_ms: int = Field(
        default=1000,
        gt=0,
        description="Threshold for slow request warnings (milliseconds)",
    )
    sensitive_fields: tuple[str, ...] = Field(
        default=("password", "token", "secret", "api_key", "authorization"),
        description="Field names to redact from logged error context",
    )


class ServerConfig(BaseModel):
    """Request deadline and shutdown drain settings."""

    model_config = ConfigDict(frozen=True)

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Ceiling for processing a single request",
    )
    shutdown_grace_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Time in-flight requests get to finish after a shutdown signal",
    )


class CorsConfig(BaseModel):
    """Cross-origin allow-list."""

    model_config = ConfigDict(frozen=True)

    allowed_origins: tuple[str, ...] = ("*",)
    allowed_methods: tuple[str, ...] = (
        "GET",
        "POST",
        "PUT",
        "PATCH",
        "DELETE",
        "OPTIONS",
    )
    allowed_headers: tuple[str, ...] = (
        "Accept",
        "Authorization",
        "Content-Type",
        "Accept-Language",
    )
    exposed_headers: tuple[str, ...] = ("Link",)
    allow_credentials: bool = True
    max_age: int = Field(default=300, ge=0, description="Preflight cache (seconds)")


class RateLimitConfig(BaseModel):
    """Process-wide token bucket settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    requests_per_minute: float = Field(default=100.0, gt=0)
    burst: int = Field(default=100, ge=1)
    exempt_paths: tuple[str, ...] = ("/health",)


class ObservabilityConfig(BaseModel):
    """OpenTelemetry tracing configuration."""

    model_config = ConfigDict(frozen=True)

    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    exporter_type: Literal["console", "otlp", "none"] = Field(
        default="console",
        description="Trace exporter type. Console routes spans through the logger.",
    )
    exporter_endpoint: str | None = Field(
        default=None,
        description="OTLP exporter endpoint",
    )
    trace_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Trace sampling rate (0.0 to 1.0)",
    )

    @field_validator("exporter_endpoint", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="Backbone API", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Environment = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # Listener settings
    api_host: str = Field(default="0.0.0.0", description="Interface to bind")  # noqa: S104
    api_port: int = Field(
        default=8080,
        ge=0,
        le=65535,
        validation_alias=AliasChoices("port", "api_port"),
        description="Port to bind; 0 picks a free port",
    )

    # Secrets
    jwt_secret: SecretStr = Field(..., description="Token signing secret")

    log_config: LogConfig = Field(default_factory=LogConfig)
    server_config: ServerConfig = Field(default_factory=ServerConfig)
    cors_config: CorsConfig = Field(default_factory=CorsConfig)
    rate_limit_config: RateLimitConfig = Field(default_factory=RateLimitConfig)
    observability_config: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig
    )

    @field_validator("jwt_secret", mode="after")
    @classmethod
    def secret_must_not_be_empty(cls, v: SecretStr) -> SecretStr:
        """Reject blank secrets."""
        if not v.get_secret_value().strip():
            msg = "JWT_SECRET is required"
            raise ValueError(msg)
        return v

    @property
    def is_development(self) -> bool:
        """Whether the service runs in the development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Whether the service runs in the production environment."""
        return self.environment == "production"

    @property
    def resolved_log_level(self) -> LogLevel:
        """Configured log level, or the environment default."""
        if self.log_config.log_level is not None:
            return self.log_config.log_level
        return "DEBUG" if self.is_development else "INFO"

    @property
    def resolved_log_formatter(self) -> Literal["console", "json"]:
        """Readable output in development, structured output elsewhere."""
        if self.log_config.log_formatter_type is not None:
            return self.log_config.log_formatter_type
        return "console" if self.is_development else "json"


@lru_cache
def get_settings() -> Settings:
    """Load settings once; raises pydantic.ValidationError when invalid."""
    return Settings()
