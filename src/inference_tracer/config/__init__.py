"""Unified configuration management for the inference tracer.

This module provides a single source of truth for all configuration,
integrating environment variables, .env files, and defaults.
"""

from inference_tracer.config.env_loader import Environment, get_environment
from inference_tracer.config.settings import (
    AppConfig,
    get_settings,
    load_app_config,
    reset_settings,
)

__all__ = [
    "AppConfig",
    "get_settings",
    "load_app_config",
    "reset_settings",
    "Environment",
    "get_environment",
]
