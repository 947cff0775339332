"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings to ensure
consistency and enable reliable querying and analysis.
"""

# Context extraction events
TRACE_CONTEXT_EXTRACTED = "trace_context_extracted"
TRACE_CONTEXT_MISSING = "trace_context_missing"
TRACE_HEADER_UNPARSEABLE = "trace_header_unparseable"
TRACE_CONTEXT_FABRICATED = "trace_context_fabricated"

# Emission events
SEGMENT_EMITTED = "segment_emitted"
SEGMENT_EMIT_FAILED = "segment_emit_failed"
TRANSPORT_CLOSED = "transport_closed"

# Traced operation events
SUBSEGMENT_FAILED = "subsegment_failed"
ROOT_SEGMENT_FINALIZED = "root_segment_finalized"

# Service events
SERVICE_STARTING = "service_starting"
SERVICE_READY = "service_ready"
SERVICE_SHUTTING_DOWN = "service_shutting_down"
INFERENCE_STARTED = "inference_started"
INFERENCE_FAILED = "inference_failed"
INFERENCE_METRICS = "inference_metrics"
INFERENCE_ERROR = "inference_error"
