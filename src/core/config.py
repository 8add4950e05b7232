"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support for every policy knob of the request pipeline.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for the logging block
- **Validation**: Built-in constraints and custom validators
- **Caching**: Configuration is cached for performance

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
4. Environment-based defaults (production vs development)
"""

import re
from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.constants import (
    DEFAULT_BODY_LIMIT_BYTES,
    DEFAULT_CORS_MAX_AGE,
    DEFAULT_HSTS_MAX_AGE,
    DEFAULT_RATE_LIMIT_MAX,
    DEFAULT_RATE_LIMIT_WINDOW_MS,
    DEFAULT_SHUTDOWN_TIMEOUT_MS,
    HEALTH_PATHS,
    MILLISECONDS_PER_SECOND,
)

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024**2, "gb": 1024**3}


def parse_byte_size(value: str | int) -> int:
    """Convert a human readable size such as ``10kb`` into bytes.

    Args:
        value: Raw byte count or a string with an optional b/kb/mb/gb suffix.

    Returns:
        int: The size in bytes.

    Raises:
        ValueError: If the value cannot be interpreted as a size.
    """
    if isinstance(value, int):
        return value

    match = _SIZE_PATTERN.match(value)
    if not match:
        msg = f"Invalid size value: {value!r}"
        raise ValueError(msg)

    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])


def split_csv(value: str) -> tuple[str, ...]:
    """Split a comma-separated environment value, dropping blank entries."""
    return tuple(item.strip() for item in value.split(",") if item.strip())


class LogConfig(BaseModel):
    """Simplified logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    excluded_paths: list[str] = Field(
        default_factory=lambda: list(HEALTH_PATHS),
        description="Paths to exclude from request logging",
    )
    slow_request_threshold_ms: int = Field(
        default=1000,
        gt=0,
        description="Threshold for slow request warnings (milliseconds)",
    )


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # Application settings
    app_name: str = Field(default="Rampart", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # Listener settings
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(
        default=3000,
        ge=0,
        le=65535,
        validation_alias=AliasChoices("port", "api_port"),
        description="API port",
    )
    tls_cert_path: str | None = Field(
        default=None, description="TLS certificate file (production only)"
    )
    tls_key_path: str | None = Field(
        default=None, description="TLS private key file (production only)"
    )

    # Rate limiting
    rate_limit_window_ms: int = Field(
        default=DEFAULT_RATE_LIMIT_WINDOW_MS,
        ge=MILLISECONDS_PER_SECOND,
        description="Fixed rate limit window length in milliseconds",
    )
    rate_limit_max: int = Field(
        default=DEFAULT_RATE_LIMIT_MAX,
        ge=1,
        description="Maximum requests per client per window",
    )
    rate_limit_skip_paths: str = Field(
        default=",".join(HEALTH_PATHS),
        description="Comma-separated paths exempt from rate limiting",
    )
    trust_proxy: bool | None = Field(
        default=None,
        description="Trust X-Forwarded-For for client identity (production default)",
    )

    # CORS
    cors_origin: str = Field(
        default="http://localhost:3000",
        description="Comma-separated whitelist of allowed origins",
    )
    cors_credentials: bool = Field(
        default=True, description="Send Access-Control-Allow-Credentials"
    )
    cors_max_age: int = Field(
        default=DEFAULT_CORS_MAX_AGE, ge=0, description="Preflight cache seconds"
    )

    # Body parsing
    body_limit: int = Field(
        default=DEFAULT_BODY_LIMIT_BYTES,
        gt=0,
        description="Maximum request body size (accepts 10kb, 1mb, ...)",
    )

    # Security headers
    hsts_max_age: int = Field(
        default=DEFAULT_HSTS_MAX_AGE, ge=0, description="HSTS max-age in seconds"
    )
    csp_report_only: bool = Field(
        default=False, description="Send CSP in report-only mode"
    )

    # Shutdown
    shutdown_timeout_ms: int = Field(
        default=DEFAULT_SHUTDOWN_TIMEOUT_MS,
        gt=0,
        description="Deadline for the graceful drain sequence in milliseconds",
    )

    # Validation policy
    user_id_format: Literal["object_id", "uuid4"] = Field(
        default="object_id",
        description="Identifier format accepted for user resources",
    )

    # Logging configuration
    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = (
                "console" if self.environment == "development" else "json"
            )

        if self.trust_proxy is None:
            self.trust_proxy = self.is_production

    @field_validator("body_limit", mode="before")
    @classmethod
    def parse_body_limit(cls, v: str | int) -> int:
        """Accept express-style size strings for the body limit."""
        _ = cls
        return parse_byte_size(v)

    @field_validator("cors_credentials", mode="before")
    @classmethod
    def parse_cors_credentials(cls, v: str | bool) -> bool:
        """Only the literal string ``false`` disables credentials."""
        _ = cls
        if isinstance(v, str):
            return v.strip().lower() != "false"
        return v

    @field_validator("tls_cert_path", "tls_key_path", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if v == "":
            return None
        return v

    @property
    def is_production(self) -> bool:
        """Whether the strict production policy applies."""
        return self.environment == "production"

    @property
    def cors_whitelist(self) -> tuple[str, ...]:
        """Allowed origins, in configuration order."""
        return split_csv(self.cors_origin)

    @property
    def rate_limit_exempt_paths(self) -> frozenset[str]:
        """Paths that bypass rate limiting entirely."""
        return frozenset(split_csv(self.rate_limit_skip_paths))

    @property
    def rate_limit_window_seconds(self) -> int:
        """Window length rounded down to whole seconds."""
        return self.rate_limit_window_ms // MILLISECONDS_PER_SECOND

    @property
    def shutdown_timeout_seconds(self) -> float:
        """Shutdown deadline in seconds."""
        return self.shutdown_timeout_ms / MILLISECONDS_PER_SECOND


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
