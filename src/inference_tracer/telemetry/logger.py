"""Structured logging configuration using structlog.

This module configures structlog for structured logging with:
- Pretty-printed or JSON console output, selected by APP_LOG_FORMAT
- Optional rotating JSONL file output when APP_LOG_DIR is set
- UTC timestamps
- Component tracking derived from the logger name
"""

import logging
import logging.handlers
import pathlib
import sys
from datetime import datetime, timezone
from typing import Any

import structlog


def _get_log_level() -> str:
    """Get log level from configuration.

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    # Bootstrap from environment to avoid circular imports during startup.
    from inference_tracer.config.bootstrap import get_bootstrap_log_level  # noqa: PLC0415

    return get_bootstrap_log_level()


def _get_log_format() -> str:
    """Get console log format ('json' or 'console')."""
    from inference_tracer.config.bootstrap import get_bootstrap_log_format  # noqa: PLC0415

    return get_bootstrap_log_format()


def _get_log_dir() -> pathlib.Path | None:
    """Get log directory path, or None when file logging is disabled."""
    from inference_tracer.config.bootstrap import get_bootstrap_log_dir  # noqa: PLC0415

    return get_bootstrap_log_dir()


def _add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add UTC timestamp to log event.

    Args:
        logger: The logger instance.
        method_name: The log method name (info, error, etc.).
        event_dict: The event dictionary.

    Returns:
        Event dictionary with timestamp added.
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _add_component_from_event_dict(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add component name to log event from event_dict logger name.

    Runs after structlog's add_logger_name processor for structlog and stdlib
    records alike, so "inference_tracer.tracing.emitter" becomes component
    "emitter".

    Args:
        logger: The structlog logger instance.
        method_name: The log method name (info, error, etc.).
        event_dict: The event dictionary.

    Returns:
        Event dictionary with component added.
    """
    logger_name = event_dict.get("logger", "")
    event_dict["component"] = logger_name.rsplit(".", 1)[-1] if logger_name else "unknown"
    return event_dict


def _foreign_pre_chain() -> list[Any]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_timestamp,
        _add_component_from_event_dict,
    ]


def _configure_file_handler(log_dir: pathlib.Path) -> logging.handlers.RotatingFileHandler:
    """Configure rotating file handler for JSON logs.

    Args:
        log_dir: Directory for log files.

    Returns:
        Configured RotatingFileHandler.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_dir / "current.jsonl"),
        maxBytes=100 * 1024 * 1024,  # 100 MB
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_foreign_pre_chain(),
        )
    )
    return handler


def _configure_console_handler(log_format: str) -> logging.StreamHandler[Any]:
    """Configure console handler.

    Args:
        log_format: "console" for pretty-printed output, "json" for one JSON
            object per line (container log collection).

    Returns:
        Configured StreamHandler.
    """
    handler = logging.StreamHandler(sys.stderr)

    if log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=_foreign_pre_chain(),
        )
    )
    return handler


def configure_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog for structured logging.

    This function should be called once at application startup. It is also
    invoked lazily by get_logger() the first time a logger is requested.

    Args:
        log_level: Console log level; defaults to APP_LOG_LEVEL from the
            environment.
        log_format: "json" or "console"; defaults to APP_LOG_FORMAT from the
            environment.
    """
    log_level = log_level or _get_log_level()
    log_format = log_format or _get_log_format()
    log_dir = _get_log_dir()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    # Silence noisy third-party loggers.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    configured_level = getattr(logging, log_level, logging.INFO)

    console_handler = _configure_console_handler(log_format)
    console_handler.setLevel(configured_level)
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        # File handler captures INFO+ regardless of the console level
        file_handler = _configure_file_handler(log_dir)
        file_handler.setLevel(min(logging.INFO, configured_level))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _add_component_from_event_dict,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:  # Returns structlog.stdlib.BoundLogger
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module).

    Returns:
        Configured structlog logger instance.

    Example:
        >>> from inference_tracer.telemetry import get_logger
        >>> log = get_logger(__name__)
        >>> log.info("segment_emitted", trace_id="1-5f43a1b2-...", segment_id="...")
    """
    # Ensure logging is configured (idempotent)
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name)
