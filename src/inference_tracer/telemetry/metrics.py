"""Per-request inference metrics.

Metrics are written as structured log records rather than pushed to a
metrics backend; the log pipeline (e.g. CloudWatch Logs Insights over the
container's JSON output) does the aggregation.
"""

from datetime import datetime, timezone
from typing import Any

from inference_tracer.telemetry.events import INFERENCE_ERROR, INFERENCE_METRICS
from inference_tracer.telemetry.logger import get_logger

log = get_logger(__name__)


def new_inference_id(now: datetime | None = None) -> str:
    """Build a human-sortable inference id such as ``inf-20240101-120000-123456``."""
    now = now or datetime.now(timezone.utc)
    return f"inf-{now:%Y%m%d-%H%M%S-%f}"


def log_inference_metrics(
    inference_id: str,
    start_time: float,
    end_time: float,
    endpoint: str,
    success: bool = True,
    error_message: str | None = None,
    operation_timings: dict[str, float] | None = None,
    trace_id: str | None = None,
) -> dict[str, Any]:
    """Emit the metrics record for one inference request.

    Args:
        inference_id: Request identifier (see new_inference_id).
        start_time: Epoch seconds when the request started.
        end_time: Epoch seconds when the request finished.
        endpoint: Endpoint name the metric is attributed to.
        success: Whether the request succeeded.
        error_message: Failure message; also logged as a separate error record.
        operation_timings: Optional per-step durations in milliseconds.
        trace_id: Trace id, when the request was traced.

    Returns:
        The metrics fields that were logged.
    """
    record: dict[str, Any] = {
        "inference_id": inference_id,
        "duration": round(end_time - start_time, 6),
        "success": success,
        "endpoint": endpoint,
    }
    if operation_timings:
        record["operation_timings"] = dict(operation_timings)
    if trace_id is not None:
        record["trace_id"] = trace_id

    log.info(INFERENCE_METRICS, **record)

    if error_message is not None:
        log.error(INFERENCE_ERROR, inference_id=inference_id, error=error_message)

    return record
