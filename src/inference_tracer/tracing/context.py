"""Per-request trace context and its recovery from inbound headers.

A TraceContext says where the current request sits in a distributed trace.
It is created once per request, never mutated, and passed explicitly to every
traced operation; there is no ambient "current context".
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Mapping

from inference_tracer.telemetry import (
    TRACE_CONTEXT_EXTRACTED,
    TRACE_CONTEXT_FABRICATED,
    TRACE_CONTEXT_MISSING,
    TRACE_HEADER_UNPARSEABLE,
    get_logger,
)
from inference_tracer.tracing.ids import IdGenerator, is_valid_trace_id

log = get_logger(__name__)

TRACE_HEADER = "X-Amzn-Trace-Id"
CUSTOM_ATTRIBUTES_HEADER = "X-Amzn-SageMaker-Custom-Attributes"

ROOT_MARKER = "Root="
CUSTOM_ATTRIBUTE_MARKER = f"{TRACE_HEADER}="


@dataclass(frozen=True)
class TraceContext:
    """Immutable trace state for one inbound request.

    Attributes:
        trace_id: Trace identifier; present iff tracing is enabled.
        root_segment_id: Pre-allocated id of the request's root segment. The
            root is emitted under this id when the request is finalized.
        enabled: Whether segments are emitted for this request.
        start_time: Epoch seconds when the context was created.
        monotonic_origin: ``time.perf_counter()`` reading taken together with
            ``start_time``. Every timestamp of the request is
            ``start_time`` plus monotonic time elapsed since this origin, so
            wall-clock steps cannot reorder segments of one request.
    """

    trace_id: str | None = None
    root_segment_id: str | None = None
    enabled: bool = False
    start_time: float = field(default_factory=time.time)
    monotonic_origin: float = field(default_factory=time.perf_counter, repr=False)

    def __post_init__(self) -> None:
        if self.enabled:
            if not is_valid_trace_id(self.trace_id):
                raise ValueError(f"Enabled trace context needs a valid trace id, got {self.trace_id!r}")
            if not self.root_segment_id:
                raise ValueError("Enabled trace context needs a root segment id")
        elif self.trace_id is not None:
            raise ValueError("Disabled trace context must not carry a trace id")

    def now(self) -> float:
        """Current time on this request's timeline, never earlier than ``start_time``."""
        return self.start_time + (time.perf_counter() - self.monotonic_origin)

    @classmethod
    def disabled(cls) -> "TraceContext":
        """Context for a request that is not traced."""
        return cls()

    @classmethod
    def from_trace_id(
        cls, trace_id: str, ids: IdGenerator, clock: Callable[[], float] = time.time
    ) -> "TraceContext":
        """Continue an existing trace, pre-allocating this service's root segment id."""
        return cls(
            trace_id=trace_id,
            root_segment_id=ids.new_entity_id(),
            enabled=True,
            start_time=clock(),
        )

    @classmethod
    def new_root(cls, ids: IdGenerator, clock: Callable[[], float] = time.time) -> "TraceContext":
        """Start a brand new trace with no upstream caller."""
        ctx = cls.from_trace_id(ids.new_trace_id(), ids, clock=clock)
        log.debug(TRACE_CONTEXT_FABRICATED, trace_id=ctx.trace_id, root_segment_id=ctx.root_segment_id)
        return ctx


def parse_trace_header(raw: str | None) -> str | None:
    """Pull the trace id out of a trace header value.

    Accepts ``Root=<trace-id>[;Parent=...;Sampled=...]`` (fields in any order)
    or a bare ``<trace-id>``.

    Args:
        raw: Header value, possibly None.

    Returns:
        The trace id, or None when the value has no valid trace id.
    """
    if not raw:
        return None

    if ROOT_MARKER in raw:
        candidate = raw.split(ROOT_MARKER, 1)[1].split(";", 1)[0].strip()
    else:
        candidate = raw.split(";", 1)[0].strip()

    return candidate if is_valid_trace_id(candidate) else None


def _from_custom_attributes(value: str) -> str | None:
    """Find an embedded ``X-Amzn-Trace-Id=<value>`` entry in a custom-attributes string."""
    if CUSTOM_ATTRIBUTE_MARKER not in value:
        return None
    remainder = value.split(CUSTOM_ATTRIBUTE_MARKER, 1)[1]
    candidate = remainder.split(",", 1)[0].strip().rstrip(",").strip()
    return candidate or None


def _lookup(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def find_trace_header(headers: Mapping[str, str]) -> tuple[str | None, str | None]:
    """Locate the raw trace carrier in request headers.

    Returns:
        ``(raw_value, carrier_name)``; both None when no carrier is present.
    """
    primary = _lookup(headers, TRACE_HEADER)
    if primary:
        return primary, TRACE_HEADER

    custom = _lookup(headers, CUSTOM_ATTRIBUTES_HEADER)
    if custom:
        embedded = _from_custom_attributes(custom)
        if embedded:
            return embedded, CUSTOM_ATTRIBUTES_HEADER

    return None, None


def extract_trace_context(
    headers: Mapping[str, str],
    ids: IdGenerator,
    clock: Callable[[], float] = time.time,
) -> TraceContext:
    """Build the TraceContext for an inbound request.

    The primary trace header wins over the custom-attributes fallback. A
    missing or unparseable carrier yields a disabled context; this function
    never raises on bad header content.

    Args:
        headers: Inbound request headers (any case).
        ids: Generator used to pre-allocate the root segment id.
        clock: Wall clock giving the context's ``start_time``.

    Returns:
        Enabled context when a valid trace id was recovered, else disabled.
    """
    raw, carrier = find_trace_header(headers)
    if raw is None:
        log.debug(TRACE_CONTEXT_MISSING)
        return TraceContext.disabled()

    trace_id = parse_trace_header(raw)
    if trace_id is None:
        log.debug(TRACE_HEADER_UNPARSEABLE, carrier=carrier, header_value=raw)
        return TraceContext.disabled()

    ctx = TraceContext.from_trace_id(trace_id, ids, clock=clock)
    log.debug(
        TRACE_CONTEXT_EXTRACTED,
        carrier=carrier,
        trace_id=ctx.trace_id,
        root_segment_id=ctx.root_segment_id,
    )
    return ctx
