"""Telemetry module for structured logging and inference metrics.

This module provides:
- Structured logging via structlog
- Semantic event constants
- Per-request inference metrics records
"""

from inference_tracer.telemetry.events import (
    INFERENCE_ERROR,
    INFERENCE_FAILED,
    INFERENCE_METRICS,
    INFERENCE_STARTED,
    ROOT_SEGMENT_FINALIZED,
    SEGMENT_EMIT_FAILED,
    SEGMENT_EMITTED,
    SERVICE_READY,
    SERVICE_SHUTTING_DOWN,
    SERVICE_STARTING,
    SUBSEGMENT_FAILED,
    TRACE_CONTEXT_EXTRACTED,
    TRACE_CONTEXT_FABRICATED,
    TRACE_CONTEXT_MISSING,
    TRACE_HEADER_UNPARSEABLE,
    TRANSPORT_CLOSED,
)
from inference_tracer.telemetry.logger import configure_logging, get_logger
from inference_tracer.telemetry.metrics import log_inference_metrics, new_inference_id

__all__ = [
    # Core exports
    "get_logger",
    "configure_logging",
    "log_inference_metrics",
    "new_inference_id",
    # Event constants
    "TRACE_CONTEXT_EXTRACTED",
    "TRACE_CONTEXT_MISSING",
    "TRACE_HEADER_UNPARSEABLE",
    "TRACE_CONTEXT_FABRICATED",
    "SEGMENT_EMITTED",
    "SEGMENT_EMIT_FAILED",
    "TRANSPORT_CLOSED",
    "SUBSEGMENT_FAILED",
    "ROOT_SEGMENT_FINALIZED",
    "SERVICE_STARTING",
    "SERVICE_READY",
    "SERVICE_SHUTTING_DOWN",
    "INFERENCE_STARTED",
    "INFERENCE_FAILED",
    "INFERENCE_METRICS",
    "INFERENCE_ERROR",
]
