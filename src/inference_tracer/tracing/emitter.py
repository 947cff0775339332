"""Best-effort delivery of segments to the local trace collector.

Two transports are supported:

- ``UDPTransport``: one datagram per segment, prefixed with the daemon's
  protocol header line, sent to ``127.0.0.1:2000`` by default.
- ``HTTPProxyTransport``: ``POST /TraceSegments`` against the daemon's HTTP
  proxy with a ``TraceSegmentDocuments`` envelope.

``SegmentEmitter`` is the only place where delivery failures are caught.
Tracing must never change the outcome of a request, so a failed emission is
logged and dropped; nothing is retried.
"""

import socket
import threading
from typing import Protocol

import httpx

from inference_tracer.telemetry import (
    SEGMENT_EMIT_FAILED,
    SEGMENT_EMITTED,
    TRANSPORT_CLOSED,
    get_logger,
)
from inference_tracer.tracing.segment import Segment, serialize_segment

log = get_logger(__name__)

DAEMON_PROTOCOL_HEADER = b'{"format":"json","version":1}'
DEFAULT_DAEMON_HOST = "127.0.0.1"
DEFAULT_DAEMON_PORT = 2000
DEFAULT_TIMEOUT_SECONDS = 1.0
TRACE_SEGMENTS_PATH = "/TraceSegments"


class Transport(Protocol):
    """Delivers one serialized segment document to the collector."""

    def send(self, document: bytes) -> None:
        """Send the document; raise on failure."""
        ...

    def close(self) -> None:
        """Release any held resources."""
        ...


class UDPTransport:
    """Fire-and-forget datagram transport to the collector daemon.

    The daemon address is resolved once, here; sends never do a name lookup,
    so the socket timeout bounds every send.

    Args:
        host: Daemon host name or IP address.
        port: Daemon UDP port.
        timeout: Socket timeout in seconds.
    """

    def __init__(
        self,
        host: str = DEFAULT_DAEMON_HOST,
        port: int = DEFAULT_DAEMON_PORT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.address = self.resolve(host, port)

    @staticmethod
    def resolve(host: str, port: int) -> tuple[str, int]:
        """Resolve the daemon address to an IPv4 (ip, port) pair.

        Raises:
            OSError: If the host name cannot be resolved.
        """
        info = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_DGRAM)
        ip, resolved_port = info[0][4][:2]
        return ip, resolved_port

    @staticmethod
    def build_datagram(document: bytes) -> bytes:
        return DAEMON_PROTOCOL_HEADER + b"\n" + document

    def send(self, document: bytes) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.settimeout(self.timeout)
            sock.sendto(self.build_datagram(document), self.address)

    def close(self) -> None:
        """Nothing to release; a socket is opened per datagram."""

    def __repr__(self) -> str:
        return f"UDPTransport(host={self.host!r}, port={self.port}, address={self.address[0]!r})"


class HTTPProxyTransport:
    """Transport that posts segments to the collector's HTTP proxy.

    Args:
        base_url: Proxy base URL, e.g. ``http://127.0.0.1:2000``.
        timeout: Total request timeout in seconds.
        client: Pre-built httpx client (tests inject a MockTransport-backed one).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))

    @property
    def url(self) -> str:
        return f"{self.base_url}{TRACE_SEGMENTS_PATH}"

    @staticmethod
    def build_envelope(document: bytes) -> dict[str, list[str]]:
        return {"TraceSegmentDocuments": [document.decode("utf-8")]}

    def send(self, document: bytes) -> None:
        response = self._client.post(
            self.url,
            json=self.build_envelope(document),
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        return f"HTTPProxyTransport(url={self.url!r})"


class SegmentEmitter:
    """Serializes segments and hands them to a transport, swallowing failures.

    Args:
        transport: Where segment documents go.
        warn_on_failure: Log dropped segments at WARNING when true, at DEBUG
            when false (fully quiet in production log levels).
    """

    def __init__(self, transport: Transport, warn_on_failure: bool = True) -> None:
        self.transport = transport
        self.warn_on_failure = warn_on_failure
        self._lock = threading.Lock()
        self._emitted = 0
        self._dropped = 0

    @property
    def emitted(self) -> int:
        """Segments handed to the transport without error."""
        return self._emitted

    @property
    def dropped(self) -> int:
        """Segments lost to serialization or transport errors."""
        return self._dropped

    def emit(self, segment: Segment) -> None:
        """Deliver one segment; never raises."""
        try:
            self.transport.send(serialize_segment(segment))
        except Exception as e:
            with self._lock:
                self._dropped += 1
            report = log.warning if self.warn_on_failure else log.debug
            report(
                SEGMENT_EMIT_FAILED,
                segment_name=segment.name,
                segment_id=segment.id,
                trace_id=segment.trace_id,
                transport=repr(self.transport),
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        with self._lock:
            self._emitted += 1
        log.debug(
            SEGMENT_EMITTED,
            segment_name=segment.name,
            segment_id=segment.id,
            trace_id=segment.trace_id,
            parent_id=segment.parent_id,
            subsegment=segment.is_subsegment,
        )

    def close(self) -> None:
        """Close the transport; errors while closing are logged, not raised."""
        try:
            self.transport.close()
        except Exception as e:
            log.warning(TRANSPORT_CLOSED, error=str(e), error_type=type(e).__name__)
            return
        log.debug(TRANSPORT_CLOSED, transport=repr(self.transport))


def create_transport(
    kind: str,
    host: str = DEFAULT_DAEMON_HOST,
    port: int = DEFAULT_DAEMON_PORT,
    proxy_url: str = f"http://{DEFAULT_DAEMON_HOST}:{DEFAULT_DAEMON_PORT}",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Transport:
    """Build the transport named by configuration ('udp' or 'http').

    Raises:
        ValueError: If the transport kind is unknown.
    """
    if kind == "udp":
        return UDPTransport(host=host, port=port, timeout=timeout)
    if kind == "http":
        return HTTPProxyTransport(proxy_url, timeout=timeout)
    raise ValueError(f"Unknown tracing transport: {kind!r}")
