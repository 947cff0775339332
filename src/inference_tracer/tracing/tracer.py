"""Traced operations and root segment finalization.

Business logic wraps units of work with ``Tracer.trace``; each call emits one
subsegment parented to the request's root segment (or to another running
subsegment). Once the request is done, ``Tracer.finalize`` emits the root.

Usage:
    tracer = get_tracer()
    ctx = tracer.extract(request.headers)
    with tracer.finalizing(ctx):
        data = tracer.trace(ctx, "data-preprocessing", lambda: preprocess(payload))
        result = tracer.trace(ctx, "model-inference", lambda: run_inference(data))

The context is always passed explicitly. Concurrent requests share the
tracer but never share per-request state.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterator, Mapping, NamedTuple, TypeVar

from inference_tracer.config import AppConfig, get_settings
from inference_tracer.telemetry import ROOT_SEGMENT_FINALIZED, SUBSEGMENT_FAILED, get_logger
from inference_tracer.tracing.context import TraceContext, extract_trace_context
from inference_tracer.tracing.emitter import SegmentEmitter, create_transport
from inference_tracer.tracing.ids import IdGenerator, create_id_generator
from inference_tracer.tracing.segment import Segment, SegmentError

log = get_logger(__name__)

T = TypeVar("T")

DEFAULT_ERROR_KIND = "InferenceError"
DEFAULT_ROOT_SEGMENT_NAME = "inference-request"
DEFAULT_SERVICE_NAME = "inference-service"


class TracedResult(NamedTuple, Generic[T]):
    """Result of a traced call tagged with the id of the subsegment it emitted."""

    value: T
    subsegment_id: str | None


@dataclass
class ActiveSubsegment:
    """Handle on a subsegment that is still running.

    ``id`` is None when the request is not traced; annotate() and
    add_metadata() are then no-ops, so callers never need to branch.
    """

    name: str
    id: str | None = None
    trace_id: str | None = None
    parent_id: str | None = None
    annotations: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def recording(self) -> bool:
        return self.id is not None

    def annotate(self, key: str, value: Any) -> None:
        if self.recording:
            self.annotations[key] = value

    def add_metadata(self, key: str, value: Any) -> None:
        if self.recording:
            self.metadata[key] = value


class Tracer:
    """Creates contexts, traces operations and finalizes requests.

    Args:
        emitter: Delivers finished segments.
        ids: Id generation strategy.
        service_name: Annotated on every root segment.
        root_segment_name: Name of the per-request root segment.
        error_kind: Exception type reported for failed operations.
        enabled: When false every request gets a disabled context.
        clock: Wall clock in epoch seconds for each request's start time
            (injectable for tests). Later timestamps of the request are
            measured from there with a monotonic clock.
    """

    def __init__(
        self,
        emitter: SegmentEmitter,
        ids: IdGenerator,
        service_name: str = DEFAULT_SERVICE_NAME,
        root_segment_name: str = DEFAULT_ROOT_SEGMENT_NAME,
        error_kind: str = DEFAULT_ERROR_KIND,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.emitter = emitter
        self.ids = ids
        self.service_name = service_name
        self.root_segment_name = root_segment_name
        self.error_kind = error_kind
        self.enabled = enabled
        self._clock = clock

    # ------------------------------------------------------------------
    # Contexts
    # ------------------------------------------------------------------

    def extract(self, headers: Mapping[str, str]) -> TraceContext:
        """Recover the trace context from inbound request headers."""
        if not self.enabled:
            return TraceContext.disabled()
        return extract_trace_context(headers, self.ids, clock=self._clock)

    def new_root(self) -> TraceContext:
        """Fabricate a fresh, enabled root context (no upstream trace)."""
        if not self.enabled:
            return TraceContext.disabled()
        return TraceContext.new_root(self.ids, clock=self._clock)

    # ------------------------------------------------------------------
    # Traced operations
    # ------------------------------------------------------------------

    @contextmanager
    def subsegment(
        self,
        context: TraceContext,
        name: str,
        parent_id: str | None = None,
        annotations: Mapping[str, Any] | None = None,
    ) -> Iterator[ActiveSubsegment]:
        """Time the enclosed block as a subsegment.

        The subsegment id is allocated up front so nested blocks can use it
        as their ``parent_id``. Timestamps are taken on the request's
        timeline (``TraceContext.now``), so a subsegment never starts before
        or ends after the root it belongs to. Anything raised by the block,
        ``KeyboardInterrupt`` and ``SystemExit`` included, is recorded and
        re-raised unchanged.

        Args:
            context: The request's trace context.
            name: Operation label.
            parent_id: Parent entity; defaults to the root segment.
            annotations: Extra annotations recorded with the subsegment.

        Yields:
            ActiveSubsegment handle.
        """
        if not context.enabled:
            yield ActiveSubsegment(name=name)
            return

        handle = ActiveSubsegment(
            name=name,
            id=self.ids.new_entity_id(),
            trace_id=context.trace_id,
            parent_id=parent_id or context.root_segment_id,
            annotations=dict(annotations or {}),
        )
        start_time = context.now()
        try:
            yield handle
        except BaseException as e:
            end_time = context.now()
            log.debug(
                SUBSEGMENT_FAILED,
                trace_id=context.trace_id,
                segment_id=handle.id,
                segment_name=name,
                error_type=type(e).__name__,
            )
            self._emit_subsegment(handle, start_time, end_time, error=e)
            raise
        self._emit_subsegment(handle, start_time, context.now())

    def _emit_subsegment(
        self,
        handle: ActiveSubsegment,
        start_time: float,
        end_time: float,
        error: BaseException | None = None,
    ) -> None:
        annotations = dict(handle.annotations)
        annotations["duration_ms"] = (end_time - start_time) * 1000
        annotations["success"] = error is None
        self.emitter.emit(
            Segment(
                name=handle.name,
                id=handle.id,  # type: ignore[arg-type]
                trace_id=handle.trace_id,  # type: ignore[arg-type]
                parent_id=handle.parent_id,
                start_time=start_time,
                end_time=end_time,
                annotations=annotations,
                error=SegmentError(str(error), self.error_kind) if error is not None else None,
                metadata=dict(handle.metadata),
            )
        )

    def trace_with_id(
        self,
        context: TraceContext,
        name: str,
        work: Callable[[], T],
        parent_id: str | None = None,
        annotations: Mapping[str, Any] | None = None,
    ) -> TracedResult[T]:
        """Like trace(), but also return the emitted subsegment's id."""
        if not context.enabled:
            return TracedResult(work(), None)
        with self.subsegment(context, name, parent_id=parent_id, annotations=annotations) as sub:
            value = work()
        return TracedResult(value, sub.id)

    def trace(
        self,
        context: TraceContext,
        name: str,
        work: Callable[[], T],
        parent_id: str | None = None,
        annotations: Mapping[str, Any] | None = None,
    ) -> T:
        """Run ``work`` and record it as a subsegment.

        With a disabled context this is exactly ``work()``. Otherwise the
        call is timed, a subsegment annotated with ``duration_ms`` and
        ``success`` is emitted, and the result is returned unchanged. If
        ``work`` raises, the subsegment carries the error and the original
        exception propagates after emission.

        Args:
            context: The request's trace context.
            name: Operation label.
            work: Zero-argument callable to run.
            parent_id: Parent entity; defaults to the root segment.
            annotations: Extra annotations recorded with the subsegment.

        Returns:
            Whatever ``work`` returned.
        """
        if not context.enabled:
            return work()
        return self.trace_with_id(
            context, name, work, parent_id=parent_id, annotations=annotations
        ).value

    # ------------------------------------------------------------------
    # Root segment
    # ------------------------------------------------------------------

    def finalize(
        self,
        context: TraceContext,
        success: bool = True,
        error_message: str | None = None,
        annotations: Mapping[str, Any] | None = None,
    ) -> None:
        """Emit the request's root segment.

        Call exactly once per request, after every subsegment of the request
        has been emitted. No-op for a disabled context.

        Args:
            context: The request's trace context.
            success: Overall outcome of the request.
            error_message: Failure message recorded on the root segment.
            annotations: Extra annotations recorded with the root segment.
        """
        if not context.enabled:
            return

        end_time = context.now()
        root_annotations = dict(annotations or {})
        root_annotations.update(
            service=self.service_name,
            success=success,
            duration_ms=(end_time - context.start_time) * 1000,
        )
        segment = Segment(
            name=self.root_segment_name,
            id=context.root_segment_id,  # type: ignore[arg-type]
            trace_id=context.trace_id,  # type: ignore[arg-type]
            start_time=context.start_time,
            end_time=end_time,
            annotations=root_annotations,
            error=SegmentError(error_message, self.error_kind) if error_message is not None else None,
        )
        self.emitter.emit(segment)
        log.info(
            ROOT_SEGMENT_FINALIZED,
            trace_id=context.trace_id,
            segment_id=context.root_segment_id,
            success=success,
            duration_ms=round(segment.duration_ms, 2),
        )

    @contextmanager
    def finalizing(self, context: TraceContext) -> Iterator[TraceContext]:
        """Finalize ``context`` exactly once when the block exits.

        The root segment is emitted after everything traced inside the
        block. Anything raised marks the root as failed and is re-raised
        unchanged.
        """
        try:
            yield context
        except BaseException as e:
            self.finalize(context, success=False, error_message=str(e))
            raise
        self.finalize(context, success=True)

    @contextmanager
    def request(self, headers: Mapping[str, str]) -> Iterator[TraceContext]:
        """Scope one inbound request: extract, yield the context, finalize once."""
        with self.finalizing(self.extract(headers)) as context:
            yield context

    def close(self) -> None:
        self.emitter.close()


def build_tracer(settings: AppConfig) -> Tracer:
    """Build a Tracer wired from application settings."""
    transport = create_transport(
        settings.tracing_transport,
        host=settings.daemon_host,
        port=settings.daemon_port,
        proxy_url=settings.proxy_url,
        timeout=settings.emit_timeout_seconds,
    )
    return Tracer(
        emitter=SegmentEmitter(transport, warn_on_failure=settings.warn_on_emit_failure),
        ids=create_id_generator(settings.id_strategy),
        service_name=settings.service_name,
        root_segment_name=settings.root_segment_name,
        error_kind=settings.error_kind,
        enabled=settings.tracing_enabled,
    )


_tracer: Tracer | None = None
_tracer_lock = threading.Lock()


def get_tracer() -> Tracer:
    """Get the process-wide tracer, building it from settings on first use."""
    global _tracer
    if _tracer is None:
        with _tracer_lock:
            if _tracer is None:
                _tracer = build_tracer(get_settings())
    return _tracer


def set_tracer(tracer: Tracer | None) -> None:
    """Replace the process-wide tracer (None resets it to lazy construction)."""
    global _tracer
    with _tracer_lock:
        _tracer = tracer


def trace(
    context: TraceContext,
    name: str,
    work: Callable[[], T],
    parent_id: str | None = None,
) -> T:
    """Trace ``work`` with the process-wide tracer. See Tracer.trace."""
    return get_tracer().trace(context, name, work, parent_id=parent_id)


def finalize(
    context: TraceContext, success: bool = True, error_message: str | None = None
) -> None:
    """Finalize a request with the process-wide tracer. See Tracer.finalize."""
    get_tracer().finalize(context, success=success, error_message=error_message)
