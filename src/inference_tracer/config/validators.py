"""Custom Pydantic validators for configuration.

This module provides validators for enumerated string settings so that
misconfiguration fails at load time instead of on the first request.
"""

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
VALID_LOG_FORMATS = {"json", "console"}
VALID_TRANSPORTS = {"udp", "http"}
VALID_ID_STRATEGIES = {"random", "deterministic"}


def validate_log_level(value: str) -> str:
    """Validate log level is one of the standard levels.

    Args:
        value: Log level string.

    Returns:
        Validated log level.

    Raises:
        ValueError: If log level is not valid.
    """
    if value.upper() not in VALID_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got {value}")
    return value.upper()


def validate_log_format(value: str) -> str:
    """Validate log format is 'json' or 'console'.

    Args:
        value: Log format string.

    Returns:
        Validated log format.

    Raises:
        ValueError: If log format is not valid.
    """
    if value.lower() not in VALID_LOG_FORMATS:
        raise ValueError(f"log_format must be one of {VALID_LOG_FORMATS}, got {value}")
    return value.lower()


def validate_transport(value: str) -> str:
    """Validate the segment transport name ('udp' or 'http').

    Raises:
        ValueError: If the transport is not supported.
    """
    if value.lower() not in VALID_TRANSPORTS:
        raise ValueError(f"tracing_transport must be one of {VALID_TRANSPORTS}, got {value}")
    return value.lower()


def validate_id_strategy(value: str) -> str:
    """Validate the identifier strategy ('random' or 'deterministic').

    Raises:
        ValueError: If the strategy is not supported.
    """
    if value.lower() not in VALID_ID_STRATEGIES:
        raise ValueError(f"id_strategy must be one of {VALID_ID_STRATEGIES}, got {value}")
    return value.lower()
