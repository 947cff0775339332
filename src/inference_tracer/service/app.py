"""FastAPI inference service with per-request tracing.

Run with ``uvicorn inference_tracer.service.app:app --host 0.0.0.0 --port 8080``.
Endpoints are plain ``def`` functions, so FastAPI runs each request on its
worker thread pool; every request gets its own TraceContext.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, TypeVar

from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from inference_tracer.config import get_settings
from inference_tracer.service.inference import (
    postprocess_results,
    preprocess_data,
    run_inference,
    validate_input,
)
from inference_tracer.service.models import (
    ErrorResponse,
    InferenceResponse,
    PingResponse,
    SimpleTraceResponse,
    TimingBreakdown,
)
from inference_tracer.telemetry import (
    INFERENCE_FAILED,
    INFERENCE_STARTED,
    SERVICE_READY,
    SERVICE_SHUTTING_DOWN,
    SERVICE_STARTING,
    configure_logging,
    get_logger,
    log_inference_metrics,
    new_inference_id,
)
from inference_tracer.tracing import TraceContext, Tracer, get_tracer, set_tracer

log = get_logger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management."""
    # Settings load the .env files, so they must exist before logging is set up.
    settings = get_settings()
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)
    log.info(SERVICE_STARTING, service_name=settings.service_name)

    tracer = get_tracer()
    log.info(
        SERVICE_READY,
        port=settings.service_port,
        tracing_enabled=tracer.enabled,
        transport=repr(tracer.emitter.transport),
    )

    yield

    log.info(SERVICE_SHUTTING_DOWN)
    tracer.close()
    set_tracer(None)


app = FastAPI(
    title="Inference Service",
    description="Inference endpoint with collector-compatible request tracing",
    version="0.1.0",
    lifespan=lifespan,
)


def get_request_tracer() -> Tracer:
    """FastAPI dependency returning the process tracer (overridden in tests)."""
    return get_tracer()


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _run_step(
    tracer: Tracer,
    context: TraceContext,
    name: str,
    work: Callable[[], T],
    timings: dict[str, float],
) -> T:
    """Trace one pipeline step and record its duration in ``timings``."""
    started = time.perf_counter()
    try:
        return tracer.trace(context, name, work)
    finally:
        timings[name] = round((time.perf_counter() - started) * 1000, 3)


# ============================================================================
# Endpoints
# ============================================================================


@app.get("/ping", response_model=PingResponse)
def ping() -> PingResponse:
    """Health check used by the hosting platform."""
    return PingResponse()


@app.post(
    "/invocations",
    response_model=InferenceResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
)
def invocations(
    request: Request,
    payload: dict[str, Any] = Body(...),
    tracer: Tracer = Depends(get_request_tracer),
) -> Any:
    """Run the inference pipeline, tracing each step.

    The trace context comes from ``X-Amzn-Trace-Id`` or, failing that, from
    the ``X-Amzn-SageMaker-Custom-Attributes`` header. Without either the
    request is served untraced.
    """
    settings = get_settings()
    context = tracer.extract(request.headers)
    inference_id = new_inference_id()
    start_time = time.time()
    timings: dict[str, float] = {}
    log.info(INFERENCE_STARTED, inference_id=inference_id, trace_id=context.trace_id)

    try:
        with tracer.finalizing(context):
            processed = _run_step(
                tracer, context, "data-preprocessing", lambda: preprocess_data(payload), timings
            )
            inference_result = _run_step(
                tracer, context, "model-inference", lambda: run_inference(processed), timings
            )
            final_result = _run_step(
                tracer,
                context,
                "post-processing",
                lambda: postprocess_results(inference_result),
                timings,
            )
    except Exception as e:
        end_time = time.time()
        log.warning(
            INFERENCE_FAILED,
            inference_id=inference_id,
            trace_id=context.trace_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        log_inference_metrics(
            inference_id=inference_id,
            start_time=start_time,
            end_time=end_time,
            endpoint=settings.endpoint_name,
            success=False,
            error_message=str(e),
            operation_timings=timings,
            trace_id=context.trace_id,
        )
        body = ErrorResponse(message=str(e), inference_id=inference_id, timestamp=_utc_timestamp())
        return JSONResponse(status_code=500, content=body.model_dump())

    end_time = time.time()
    log_inference_metrics(
        inference_id=inference_id,
        start_time=start_time,
        end_time=end_time,
        endpoint=settings.endpoint_name,
        success=True,
        operation_timings=timings,
        trace_id=context.trace_id,
    )

    return InferenceResponse(
        message="Inference completed successfully!",
        result=final_result,
        timestamp=_utc_timestamp(),
        inference_id=inference_id,
        timing_breakdown=TimingBreakdown(
            total_duration_ms=round((end_time - start_time) * 1000, 3),
            operations_ms=timings,
        ),
        tracing_enabled=context.enabled,
        trace_id=context.trace_id,
    )


@app.post("/test-simple", response_model=SimpleTraceResponse, response_model_exclude_none=True)
def test_simple(
    payload: dict[str, Any] = Body(...),
    tracer: Tracer = Depends(get_request_tracer),
) -> Any:
    """Standalone tracing demo: always starts a fresh trace, ignoring headers."""
    context = tracer.new_root()

    try:
        with tracer.finalizing(context):
            validated = tracer.trace(context, "validation", lambda: validate_input(payload))
            processed = tracer.trace(context, "processing", lambda: validated.upper())
            result = tracer.trace(context, "finalization", lambda: f"FINAL: {processed}")
    except Exception as e:
        body = ErrorResponse(message=str(e), timestamp=_utc_timestamp())
        return JSONResponse(status_code=500, content=body.model_dump())

    return SimpleTraceResponse(
        message="Simple tracing example completed!",
        result=result,
        timestamp=_utc_timestamp(),
        trace_id=context.trace_id,
    )
