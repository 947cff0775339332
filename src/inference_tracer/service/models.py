"""Data models for service layer."""

from typing import Any

from pydantic import BaseModel, Field


class PingResponse(BaseModel):
    status: str = "ok"


class TimingBreakdown(BaseModel):
    """Request timing summary returned to the caller."""

    total_duration_ms: float
    operations_ms: dict[str, float] = Field(default_factory=dict)


class InferenceResponse(BaseModel):
    """Successful /invocations response.

    ``trace_id`` is only present when the request was traced; the rest of
    the body is the same with or without tracing.
    """

    message: str
    result: dict[str, Any]
    timestamp: str
    inference_id: str
    timing_breakdown: TimingBreakdown
    tracing_enabled: bool
    trace_id: str | None = None


class ErrorResponse(BaseModel):
    """Body returned when the pipeline fails."""

    error: str = "Internal server error"
    message: str
    inference_id: str | None = None
    timestamp: str


class SimpleTraceResponse(BaseModel):
    """Response of the standalone tracing demo endpoint."""

    message: str
    result: str
    timestamp: str
    trace_id: str | None = None
