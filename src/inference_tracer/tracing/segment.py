"""Segment records and their wire serialization."""

from dataclasses import dataclass, field
from typing import Any

import orjson

SUBSEGMENT_TYPE = "subsegment"


@dataclass(frozen=True)
class SegmentError:
    """Failure recorded on a segment.

    Attributes:
        message: The failure message (``str(exc)`` for traced operations).
        kind: Exception type name reported to the collector.
    """

    message: str
    kind: str = "InferenceError"


@dataclass
class Segment:
    """A root segment or, when ``parent_id`` is set, a subsegment.

    Attributes:
        name: Operation label shown in the trace view.
        id: 16-hex-digit entity id.
        trace_id: Trace this segment belongs to.
        start_time: Epoch seconds when the work began.
        end_time: Epoch seconds when the work ended.
        parent_id: Parent segment/subsegment id; None for the root segment.
        annotations: Indexed key/value data (duration_ms, success, ...).
        error: Present iff the work failed.
        metadata: Non-indexed free-form data; omitted from the wire when empty.
    """

    name: str
    id: str
    trace_id: str
    start_time: float
    end_time: float
    parent_id: str | None = None
    annotations: dict[str, Any] = field(default_factory=dict)
    error: SegmentError | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise ValueError(
                f"Segment {self.name!r} ends before it starts "
                f"({self.end_time} < {self.start_time})"
            )

    @property
    def is_subsegment(self) -> bool:
        return self.parent_id is not None

    @property
    def duration_ms(self) -> float:
        return (self.end_time - self.start_time) * 1000

    def to_document(self) -> dict[str, Any]:
        """Build the collector document for this segment.

        Optional fields are left out rather than sent as null.
        """
        doc: dict[str, Any] = {
            "name": self.name,
            "id": self.id,
            "trace_id": self.trace_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "annotations": self.annotations,
        }
        if self.parent_id is not None:
            doc["parent_id"] = self.parent_id
            doc["type"] = SUBSEGMENT_TYPE
        if self.error is not None:
            doc["error"] = True
            doc["cause"] = {
                "exceptions": [{"message": self.error.message, "type": self.error.kind}]
            }
        if self.metadata:
            doc["metadata"] = self.metadata
        return doc


def serialize_segment(segment: Segment) -> bytes:
    """Serialize a segment to compact JSON bytes.

    Non-JSON annotation values (e.g. datetimes, numpy scalars) are rendered
    with ``str()`` instead of failing the emission.
    """
    return orjson.dumps(segment.to_document(), default=str)
