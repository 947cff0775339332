"""Application configuration settings.

This module provides the AppConfig class and settings singleton.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from inference_tracer.config.env_loader import Environment, get_environment, load_env_files
from inference_tracer.config.validators import (
    validate_id_strategy,
    validate_log_format,
    validate_log_level,
    validate_transport,
)

log = structlog.get_logger(__name__)


class AppConfig(BaseSettings):
    """Unified application configuration.

    Loads configuration from environment variables (``TRACER_`` prefix),
    ``.env`` files and defaults. Validates all values using Pydantic.
    """

    model_config = SettingsConfigDict(
        # .env files are loaded manually via env_loader to support
        # environment-specific files with a priority order.
        env_prefix="TRACER_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )

    # Application
    service_name: str = Field(
        default="inference-service", description="Service name annotated on root segments"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="APP_LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="console", alias="APP_LOG_FORMAT", description="Log format (json or console)"
    )

    # Tracing
    tracing_enabled: bool = Field(
        default=True, description="Master switch; when false every request is untraced"
    )
    tracing_transport: str = Field(
        default="udp", description="Segment transport to the local collector (udp or http)"
    )
    daemon_host: str = Field(default="127.0.0.1", description="Collector daemon UDP host")
    daemon_port: int = Field(default=2000, ge=1, le=65535, description="Collector daemon UDP port")
    proxy_url: str = Field(
        default="http://127.0.0.1:2000", description="Collector daemon HTTP proxy base URL"
    )
    emit_timeout_seconds: float = Field(
        default=1.0, gt=0, le=10, description="Upper bound on a single segment emission"
    )
    id_strategy: str = Field(
        default="random", description="Identifier strategy (random or deterministic)"
    )
    root_segment_name: str = Field(
        default="inference-request", description="Name of the per-request root segment"
    )
    error_kind: str = Field(
        default="InferenceError", description="Exception type reported for failed operations"
    )
    warn_on_emit_failure: bool = Field(
        default=True,
        description="Log dropped segments at WARNING (true) or DEBUG (false)",
    )

    # Service
    endpoint_name: str = Field(
        default="inference-endpoint", description="Endpoint name reported in inference metrics"
    )
    service_port: int = Field(default=8080, description="Service port number")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        return validate_log_format(v)

    @field_validator("tracing_transport")
    @classmethod
    def validate_transport(cls, v: str) -> str:
        """Validate segment transport."""
        return validate_transport(v)

    @field_validator("id_strategy")
    @classmethod
    def validate_id_strategy(cls, v: str) -> str:
        """Validate identifier strategy."""
        return validate_id_strategy(v)

    @field_validator("proxy_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the proxy base URL."""
        return v.rstrip("/")


_settings: AppConfig | None = None


def load_app_config() -> AppConfig:
    """Load and validate application configuration.

    This function:
    1. Loads .env files in priority order (via env_loader)
    2. Creates AppConfig instance (reads from environment variables)
    3. Validates all values using Pydantic

    Returns:
        Validated AppConfig instance.

    Raises:
        ValidationError: If configuration validation fails.
    """
    log.info("loading_app_config", environment=get_environment().value)

    load_env_files()

    try:
        config = AppConfig()
        log.info(
            "app_config_loaded",
            environment=config.environment.value,
            tracing_enabled=config.tracing_enabled,
            tracing_transport=config.tracing_transport,
            id_strategy=config.id_strategy,
        )
        return config
    except Exception as e:
        log.error("app_config_load_failed", error=str(e), error_type=type(e).__name__)
        raise


def get_settings() -> AppConfig:
    """Get the application settings singleton.

    Returns:
        AppConfig instance (singleton pattern).
    """
    global _settings
    if _settings is None:
        _settings = load_app_config()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
