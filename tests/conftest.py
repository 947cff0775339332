"""Shared fixtures for tracer tests."""

import json

import pytest

from inference_tracer.tracing.emitter import SegmentEmitter
from inference_tracer.tracing.ids import DeterministicIdGenerator
from inference_tracer.tracing.tracer import Tracer

TRACE_ID = "1-5f43a1b2-aaaaaaaaaaaaaaaaaaaaaaaa"
FIXED_EPOCH = 1_598_267_826.25


class RecordingTransport:
    """Transport that keeps every sent document, decoded, in send order."""

    def __init__(self) -> None:
        self.documents: list[dict] = []
        self.closed = False

    def send(self, document: bytes) -> None:
        self.documents.append(json.loads(document))

    def close(self) -> None:
        self.closed = True

    def named(self, name: str) -> list[dict]:
        return [d for d in self.documents if d["name"] == name]


class FailingTransport:
    """Transport whose every send fails."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ConnectionRefusedError("collector unreachable")
        self.attempts = 0

    def send(self, document: bytes) -> None:
        self.attempts += 1
        raise self.error

    def close(self) -> None:
        pass


@pytest.fixture
def recording_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def deterministic_ids() -> DeterministicIdGenerator:
    return DeterministicIdGenerator(clock=lambda: FIXED_EPOCH, pid=4242)


@pytest.fixture
def tracer(
    recording_transport: RecordingTransport, deterministic_ids: DeterministicIdGenerator
) -> Tracer:
    return Tracer(
        emitter=SegmentEmitter(recording_transport),
        ids=deterministic_ids,
        service_name="test-service",
    )
