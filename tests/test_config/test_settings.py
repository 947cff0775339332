"""Tests for configuration settings."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from inference_tracer.config import (
    AppConfig,
    Environment,
    get_environment,
    get_settings,
    load_app_config,
    reset_settings,
)
from inference_tracer.config.env_loader import load_env_files

TRACER_ENV_VARS = (
    "TRACER_TRACING_ENABLED",
    "TRACER_TRACING_TRANSPORT",
    "TRACER_DAEMON_PORT",
    "TRACER_PROXY_URL",
    "TRACER_ID_STRATEGY",
    "TRACER_SERVICE_NAME",
    "TRACER_EMIT_TIMEOUT_SECONDS",
    "APP_LOG_LEVEL",
    "APP_LOG_FORMAT",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in TRACER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)
    return monkeypatch


class TestEnvironmentDetection:
    """Test environment detection."""

    def test_default_is_development(self, clean_env: pytest.MonkeyPatch) -> None:
        assert get_environment() == Environment.DEVELOPMENT

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("production", Environment.PRODUCTION),
            ("prod", Environment.PRODUCTION),
            ("staging", Environment.STAGING),
            ("stage", Environment.STAGING),
            ("test", Environment.TEST),
            ("TEST", Environment.TEST),
        ],
    )
    def test_aliases(self, monkeypatch: pytest.MonkeyPatch, value: str, expected: Environment) -> None:
        monkeypatch.setenv("APP_ENV", value)
        assert get_environment() == expected


class TestAppConfig:
    """Test AppConfig class."""

    def test_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        """Code defaults, isolated from the environment."""
        config = AppConfig()
        assert config.environment == Environment.DEVELOPMENT
        assert config.service_name == "inference-service"
        assert config.log_level == "INFO"
        assert config.log_format == "console"
        assert config.tracing_enabled is True
        assert config.tracing_transport == "udp"
        assert config.daemon_host == "127.0.0.1"
        assert config.daemon_port == 2000
        assert config.proxy_url == "http://127.0.0.1:2000"
        assert config.emit_timeout_seconds == 1.0
        assert config.id_strategy == "random"
        assert config.root_segment_name == "inference-request"
        assert config.error_kind == "InferenceError"
        assert config.warn_on_emit_failure is True
        assert config.service_port == 8080

    def test_from_env_vars(self, clean_env: pytest.MonkeyPatch) -> None:
        """TRACER_ prefixed variables and APP_ aliases are read."""
        clean_env.setenv("TRACER_TRACING_TRANSPORT", "HTTP")
        clean_env.setenv("TRACER_DAEMON_PORT", "2100")
        clean_env.setenv("TRACER_ID_STRATEGY", "deterministic")
        clean_env.setenv("TRACER_TRACING_ENABLED", "false")
        clean_env.setenv("TRACER_PROXY_URL", "http://collector:2000/")
        clean_env.setenv("APP_LOG_LEVEL", "debug")

        config = AppConfig()
        assert config.tracing_transport == "http"
        assert config.daemon_port == 2100
        assert config.id_strategy == "deterministic"
        assert config.tracing_enabled is False
        assert config.proxy_url == "http://collector:2000"
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("TRACER_TRACING_TRANSPORT", "tcp"),
            ("TRACER_ID_STRATEGY", "sequential"),
            ("TRACER_DAEMON_PORT", "70000"),
            ("TRACER_EMIT_TIMEOUT_SECONDS", "0"),
            ("APP_LOG_LEVEL", "INVALID"),
            ("APP_LOG_FORMAT", "xml"),
        ],
    )
    def test_invalid_values_fail_at_load(
        self, clean_env: pytest.MonkeyPatch, name: str, value: str
    ) -> None:
        clean_env.setenv(name, value)
        with pytest.raises(ValidationError):
            AppConfig()


class TestSingleton:
    """Test singleton pattern."""

    def test_get_settings_returns_singleton(self, clean_env: pytest.MonkeyPatch) -> None:
        reset_settings()
        try:
            assert get_settings() is get_settings()
        finally:
            reset_settings()

    def test_reset_reloads(self, clean_env: pytest.MonkeyPatch) -> None:
        reset_settings()
        try:
            first = get_settings()
            clean_env.setenv("TRACER_SERVICE_NAME", "reloaded")
            reset_settings()
            second = get_settings()
            assert second is not first
            assert second.service_name == "reloaded"
        finally:
            reset_settings()

    def test_load_app_config_creates_config(self, clean_env: pytest.MonkeyPatch) -> None:
        assert isinstance(load_app_config(), AppConfig)


class TestEnvFileLoading:
    """Test .env file loading."""

    def test_priority(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / ".env").write_text("TRACER_TEST_VAR=base\nTRACER_BASE_ONLY=yes\n")
        (tmp_path / ".env.local").write_text("TRACER_TEST_VAR=local\n")
        (tmp_path / ".env.development").write_text("TRACER_TEST_VAR=development\n")
        (tmp_path / ".env.development.local").write_text("TRACER_TEST_VAR=development_local\n")
        monkeypatch.setenv("APP_ENV", "development")
        monkeypatch.delenv("TRACER_TEST_VAR", raising=False)
        monkeypatch.delenv("TRACER_BASE_ONLY", raising=False)

        loaded = load_env_files(tmp_path)

        assert loaded == [".env", ".env.local", ".env.development", ".env.development.local"]
        assert os.getenv("TRACER_TEST_VAR") == "development_local"
        assert os.getenv("TRACER_BASE_ONLY") == "yes"

    def test_exported_variables_win(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / ".env").write_text("TRACER_TEST_VAR=from_file\n")
        monkeypatch.setenv("TRACER_TEST_VAR", "exported")

        load_env_files(tmp_path)

        assert os.getenv("TRACER_TEST_VAR") == "exported"

    def test_no_files(self, tmp_path: Path) -> None:
        assert load_env_files(tmp_path) == []
