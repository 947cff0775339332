"""Tests for segment transports and the emitter boundary."""

import json
import socket
from unittest.mock import MagicMock, patch

import httpx
import pytest

from inference_tracer.tracing.emitter import (
    DAEMON_PROTOCOL_HEADER,
    HTTPProxyTransport,
    SegmentEmitter,
    UDPTransport,
    create_transport,
)
from inference_tracer.tracing.segment import Segment

from conftest import FailingTransport, RecordingTransport

TRACE_ID = "1-5f43a1b2-aaaaaaaaaaaaaaaaaaaaaaaa"


def _segment(parent_id: str | None = None) -> Segment:
    return Segment(
        name="step-a",
        id="0123456789abcdef",
        trace_id=TRACE_ID,
        start_time=1598267826.0,
        end_time=1598267826.25,
        parent_id=parent_id,
        annotations={"duration_ms": 250.0, "success": True},
    )


@pytest.fixture
def udp_listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


class TestUDPTransport:
    """Test datagram delivery to the daemon."""

    def test_datagram_has_header_line_and_segment(self, udp_listener: socket.socket) -> None:
        port = udp_listener.getsockname()[1]
        emitter = SegmentEmitter(UDPTransport("127.0.0.1", port))

        emitter.emit(_segment(parent_id="fedcba9876543210"))

        data, _ = udp_listener.recvfrom(65536)
        header, body = data.split(b"\n", 1)
        assert header == b'{"format":"json","version":1}'
        doc = json.loads(body)
        assert doc["name"] == "step-a"
        assert doc["parent_id"] == "fedcba9876543210"
        assert doc["type"] == "subsegment"
        assert emitter.emitted == 1

    def test_build_datagram(self) -> None:
        assert UDPTransport.build_datagram(b"{}") == DAEMON_PROTOCOL_HEADER + b"\n{}"

    def test_host_is_resolved_once(self, udp_listener: socket.socket) -> None:
        port = udp_listener.getsockname()[1]
        with patch.object(socket, "getaddrinfo", wraps=socket.getaddrinfo) as lookup:
            transport = UDPTransport("localhost", port)
            emitter = SegmentEmitter(transport)
            emitter.emit(_segment())
            emitter.emit(_segment())

        assert lookup.call_count == 1
        assert transport.address == ("127.0.0.1", port)
        udp_listener.recvfrom(65536)
        udp_listener.recvfrom(65536)
        assert emitter.emitted == 2

    def test_unresolvable_host_fails_at_construction(self) -> None:
        with patch.object(socket, "getaddrinfo", side_effect=socket.gaierror("no such host")):
            with pytest.raises(OSError, match="no such host"):
                UDPTransport("collector.invalid", 2000)


class TestHTTPProxyTransport:
    """Test delivery through the daemon's HTTP proxy."""

    def _client(self, handler) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler))

    def test_posts_envelope_to_trace_segments(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"UnprocessedTraceSegments": []})

        transport = HTTPProxyTransport("http://127.0.0.1:2000/", client=self._client(handler))
        SegmentEmitter(transport).emit(_segment())

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://127.0.0.1:2000/TraceSegments"
        body = json.loads(request.content)
        assert list(body) == ["TraceSegmentDocuments"]
        assert len(body["TraceSegmentDocuments"]) == 1
        document = json.loads(body["TraceSegmentDocuments"][0])
        assert document["trace_id"] == TRACE_ID

    def test_error_status_is_dropped_with_warning(self) -> None:
        transport = HTTPProxyTransport(
            "http://127.0.0.1:2000",
            client=self._client(lambda request: httpx.Response(503)),
        )
        emitter = SegmentEmitter(transport)

        with patch("inference_tracer.tracing.emitter.log") as mock_log:
            emitter.emit(_segment())

        assert emitter.dropped == 1
        mock_log.warning.assert_called_once()
        assert mock_log.warning.call_args.kwargs["error_type"] == "HTTPStatusError"

    def test_timeout_is_dropped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        emitter = SegmentEmitter(HTTPProxyTransport("http://127.0.0.1:2000", client=self._client(handler)))
        emitter.emit(_segment())
        assert emitter.dropped == 1

    def test_close_closes_client(self) -> None:
        client = MagicMock(spec=httpx.Client)
        HTTPProxyTransport("http://127.0.0.1:2000", client=client).close()
        client.close.assert_called_once()


class TestSegmentEmitter:
    """Test the catch-log-drop boundary."""

    def test_successful_emit_counts(self) -> None:
        transport = RecordingTransport()
        emitter = SegmentEmitter(transport)
        emitter.emit(_segment())
        assert emitter.emitted == 1
        assert emitter.dropped == 0
        assert transport.documents[0]["id"] == "0123456789abcdef"

    def test_transport_failure_never_raises(self) -> None:
        transport = FailingTransport()
        emitter = SegmentEmitter(transport)
        emitter.emit(_segment())
        emitter.emit(_segment())
        assert transport.attempts == 2
        assert emitter.dropped == 2
        assert emitter.emitted == 0

    def test_failure_logged_at_debug_when_warnings_disabled(self) -> None:
        emitter = SegmentEmitter(FailingTransport(), warn_on_failure=False)
        with patch("inference_tracer.tracing.emitter.log") as mock_log:
            emitter.emit(_segment())
        mock_log.warning.assert_not_called()
        mock_log.debug.assert_called_once()

    def test_no_retry(self) -> None:
        transport = FailingTransport(OSError("network down"))
        SegmentEmitter(transport).emit(_segment())
        assert transport.attempts == 1

    def test_close_delegates_to_transport(self) -> None:
        transport = RecordingTransport()
        SegmentEmitter(transport).close()
        assert transport.closed is True

    def test_unreachable_udp_daemon_does_not_raise(self) -> None:
        # Nothing listens on the discard port; UDP send still succeeds or fails quietly.
        emitter = SegmentEmitter(UDPTransport("127.0.0.1", 9, timeout=0.1))
        emitter.emit(_segment())
        assert emitter.emitted + emitter.dropped == 1


class TestCreateTransport:
    """Test transport selection."""

    def test_udp(self) -> None:
        transport = create_transport("udp", host="127.0.0.1", port=2001, timeout=0.5)
        assert isinstance(transport, UDPTransport)
        assert transport.port == 2001
        assert transport.timeout == 0.5

    def test_http(self) -> None:
        transport = create_transport("http", proxy_url="http://collector:2000")
        assert isinstance(transport, HTTPProxyTransport)
        assert transport.url == "http://collector:2000/TraceSegments"
        transport.close()

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown tracing transport"):
            create_transport("kafka")
