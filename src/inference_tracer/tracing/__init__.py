"""Request tracing for the inference service.

Provides collector-compatible tracing with:
- Trace and entity id generation (random or deterministic)
- Trace context recovery from X-Amzn-Trace-Id / custom-attributes headers
- Subsegment recording around units of business logic
- Best-effort UDP or HTTP-proxy delivery to the local collector daemon
"""

from inference_tracer.tracing.context import (
    CUSTOM_ATTRIBUTES_HEADER,
    TRACE_HEADER,
    TraceContext,
    extract_trace_context,
    parse_trace_header,
)
from inference_tracer.tracing.emitter import (
    HTTPProxyTransport,
    SegmentEmitter,
    Transport,
    UDPTransport,
    create_transport,
)
from inference_tracer.tracing.ids import (
    DeterministicIdGenerator,
    IdGenerator,
    RandomIdGenerator,
    create_id_generator,
)
from inference_tracer.tracing.segment import Segment, SegmentError, serialize_segment
from inference_tracer.tracing.tracer import (
    ActiveSubsegment,
    TracedResult,
    Tracer,
    build_tracer,
    finalize,
    get_tracer,
    set_tracer,
    trace,
)

__all__ = [
    "TraceContext",
    "extract_trace_context",
    "parse_trace_header",
    "TRACE_HEADER",
    "CUSTOM_ATTRIBUTES_HEADER",
    "IdGenerator",
    "RandomIdGenerator",
    "DeterministicIdGenerator",
    "create_id_generator",
    "Segment",
    "SegmentError",
    "serialize_segment",
    "Transport",
    "UDPTransport",
    "HTTPProxyTransport",
    "SegmentEmitter",
    "create_transport",
    "Tracer",
    "ActiveSubsegment",
    "TracedResult",
    "build_tracer",
    "get_tracer",
    "set_tracer",
    "trace",
    "finalize",
]
