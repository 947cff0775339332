"""Trace and entity identifier generation.

Two interchangeable strategies produce ids in the collector's formats:

- TraceID: ``1-<8 hex epoch seconds>-<24 hex>``
- EntityID (segment/subsegment id): 16 lowercase hex characters

``RandomIdGenerator`` samples hex characters from a general-purpose PRNG.
``DeterministicIdGenerator`` derives ids from (time in microseconds, process
id, process-wide counter) so tests can reproduce them exactly.
"""

import os
import random
import re
import threading
import time
from typing import Callable, Protocol

HEX_ALPHABET = "0123456789abcdef"

TRACE_ID_VERSION = "1"
TRACE_ID_EPOCH_LENGTH = 8
TRACE_ID_SUFFIX_LENGTH = 24
ENTITY_ID_LENGTH = 16

TRACE_ID_PATTERN = re.compile(r"^1-[0-9a-fA-F]{8}-[0-9a-fA-F]{24}$")
ENTITY_ID_PATTERN = re.compile(r"^[0-9a-f]{16}$")


class IdGenerator(Protocol):
    """Source of trace ids and entity ids."""

    def new_trace_id(self) -> str:
        """Return a new TraceID."""
        ...

    def new_entity_id(self) -> str:
        """Return a new 16-hex-digit EntityID."""
        ...


def is_valid_trace_id(value: str | None) -> bool:
    """Check that a value has the exact ``1-XXXXXXXX-YYYY...`` trace id shape."""
    return value is not None and TRACE_ID_PATTERN.match(value) is not None


def is_valid_entity_id(value: str | None) -> bool:
    """Check that a value is 16 lowercase hex characters."""
    return value is not None and ENTITY_ID_PATTERN.match(value) is not None


def format_trace_id(epoch_seconds: float, suffix: str) -> str:
    """Assemble a TraceID from its epoch part and 24-hex suffix."""
    return f"{TRACE_ID_VERSION}-{int(epoch_seconds) & 0xFFFFFFFF:08x}-{suffix}"


def fold_to_hex(micros: int, pid: int, counter: int, length: int) -> str:
    """Fold (time, pid, counter) into a fixed-length hex string.

    The decimal digits of the three values are concatenated and reduced to
    hex characters by repeated modulo-16 reduction. The result is truncated
    to its least-significant ``length`` characters, or left-padded with
    zeros, so the counter always influences the output.

    Args:
        micros: Wall-clock time in microseconds.
        pid: Process identifier.
        counter: Monotonic per-process counter value.
        length: Number of hex characters to return.

    Returns:
        Lowercase hex string of exactly ``length`` characters.
    """
    value = int(f"{micros}{pid}{counter}")
    chars = []
    while value:
        value, remainder = divmod(value, 16)
        chars.append(HEX_ALPHABET[remainder])
    digits = "".join(reversed(chars)) or "0"
    return digits[-length:].rjust(length, "0")


class RandomIdGenerator:
    """Ids from uniformly sampled hex characters."""

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock

    def _hex(self, length: int) -> str:
        return "".join(self._rng.choices(HEX_ALPHABET, k=length))

    def new_trace_id(self) -> str:
        return format_trace_id(self._clock(), self._hex(TRACE_ID_SUFFIX_LENGTH))

    def new_entity_id(self) -> str:
        return self._hex(ENTITY_ID_LENGTH)


class DeterministicIdGenerator:
    """Ids derived from time, process identity and a monotonic counter.

    The counter is the only process-wide mutable state in the tracing
    package; every id consumes one counter value under a lock, so two ids
    from the same generator never share a (time, pid, counter) tuple.

    Args:
        clock: Returns epoch seconds; injectable for reproducible tests.
        pid: Process identity; defaults to ``os.getpid()``.
        start: First counter value.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        pid: int | None = None,
        start: int = 0,
    ) -> None:
        self._clock = clock
        self._pid = os.getpid() if pid is None else pid
        self._counter = start
        self._lock = threading.Lock()

    @property
    def counter(self) -> int:
        """Next counter value to be used."""
        return self._counter

    def _next(self) -> tuple[float, int]:
        with self._lock:
            value = self._counter
            self._counter += 1
        return self._clock(), value

    def new_trace_id(self) -> str:
        now, counter = self._next()
        micros = int(now * 1_000_000)
        return format_trace_id(now, fold_to_hex(micros, self._pid, counter, TRACE_ID_SUFFIX_LENGTH))

    def new_entity_id(self) -> str:
        now, counter = self._next()
        micros = int(now * 1_000_000)
        return fold_to_hex(micros, self._pid, counter, ENTITY_ID_LENGTH)


def create_id_generator(strategy: str) -> IdGenerator:
    """Build the id generator for a configured strategy name.

    Raises:
        ValueError: If the strategy is unknown.
    """
    if strategy == "random":
        return RandomIdGenerator()
    if strategy == "deterministic":
        return DeterministicIdGenerator()
    raise ValueError(f"Unknown id strategy: {strategy!r}")
