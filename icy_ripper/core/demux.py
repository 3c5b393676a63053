"""
Splits a raw ICY byte stream into response headers, audio and metadata.

The stream carries the response header block, then a repeating cycle of
``metaint`` audio bytes followed by one length-prefixed metadata block.
Transport reads have no relation to those boundaries, so the
``DemuxController`` keeps exactly one of three parser states active and feeds
each chunk to it. When a state completes its unit in the middle of a chunk it
switches the controller and hands back the unconsumed tail, which is
dispatched to the newly active state before the next read is issued.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from icy_ripper.exceptions import StateMachineError

log = logging.getLogger(__name__)

HEADER_DELIMITER = b"\r\n\r\n"
METADATA_BLOCK_UNIT = 16  # The length byte counts 16-byte units


class StateKind(Enum):
    """The three phases of an ICY stream."""

    HEADER = "header"
    AUDIO = "audio"
    METADATA = "metadata"


def _discard(_payload) -> None:
    return None


@dataclass
class HeaderState:
    """Collects the response header block up to the first blank line."""

    kind: ClassVar[StateKind] = StateKind.HEADER

    on_headers: Callable[[str], None] = _discard
    buffer: bytearray = field(default_factory=bytearray, repr=False)


@dataclass
class AudioState:
    """
    Forwards audio bytes until ``metadata_boundary`` bytes have passed since the
    last metadata block. A boundary of 0 means the stream has no metadata.
    """

    kind: ClassVar[StateKind] = StateKind.AUDIO

    on_audio: Callable[[bytes], None] = _discard
    metadata_boundary: int = 0
    bytes_processed: int = 0


@dataclass
class MetadataState:
    """Reassembles one length-prefixed metadata block across reads."""

    kind: ClassVar[StateKind] = StateKind.METADATA

    on_metadata: Callable[[str], None] = _discard
    buffer: bytearray = field(default_factory=bytearray, repr=False)
    expected_length: int | None = None


ParserState = HeaderState | AudioState | MetadataState


def decode_metadata(block: bytes) -> str:
    """
    Decodes a metadata block, dropping the NUL padding. Stations are not
    consistent about the charset, so anything that is not valid UTF-8 is read
    as latin-1.
    """
    text = block.split(b"\x00", 1)[0]
    try:
        return text.decode("utf-8")
    except UnicodeDecodeError:
        return text.decode("latin-1")


def _step_header(
    state: HeaderState, controller: "DemuxController", chunk: bytes
) -> bytes:
    state.buffer.extend(chunk)
    index = state.buffer.find(HEADER_DELIMITER)
    if index < 0:
        return b""

    header_block = bytes(state.buffer[:index])
    remainder = bytes(state.buffer[index + len(HEADER_DELIMITER) :])
    state.buffer.clear()

    state.on_headers(header_block.decode("latin-1"))
    controller.switch(StateKind.AUDIO)
    return remainder


def _step_audio(
    state: AudioState, controller: "DemuxController", chunk: bytes
) -> bytes:
    boundary = state.metadata_boundary
    state.bytes_processed += len(chunk)

    if boundary <= 0 or state.bytes_processed < boundary:
        state.on_audio(chunk)
        return b""

    # bytes_processed already includes this chunk, so the overshoot is the
    # number of trailing bytes that belong to the metadata block.
    split_at = len(chunk) - (state.bytes_processed - boundary)
    audio, remainder = chunk[:split_at], chunk[split_at:]
    if audio:
        state.on_audio(audio)

    state.bytes_processed = 0
    controller.switch(StateKind.METADATA)
    return remainder


def _step_metadata(
    state: MetadataState, controller: "DemuxController", chunk: bytes
) -> bytes:
    if state.expected_length is None:
        state.expected_length = chunk[0] * METADATA_BLOCK_UNIT
        chunk = chunk[1:]

    state.buffer.extend(chunk)
    expected = state.expected_length
    if len(state.buffer) < expected:
        return b""

    block = bytes(state.buffer[:expected])
    remainder = bytes(state.buffer[expected:])
    state.buffer.clear()
    state.expected_length = None

    if expected > 0:
        state.on_metadata(decode_metadata(block))

    controller.switch(StateKind.AUDIO)
    return remainder


class DemuxController:
    """
    Finite-state machine driving the three parser states.

    Each state is registered once and lives as long as the controller, so the
    counters and buffers a state keeps survive across cycles.
    """

    def __init__(self, start: StateKind | None = StateKind.HEADER):
        self.start = start
        self._states: dict[StateKind, ParserState] = {}
        self._current: ParserState | None = None

    @property
    def current(self) -> StateKind | None:
        """The kind of the active state, or None before the first chunk."""
        return self._current.kind if self._current is not None else None

    def register(self, state: ParserState) -> None:
        if state.kind in self._states:
            raise StateMachineError(
                f"A {state.kind.value} state is already registered."
            )
        self._states[state.kind] = state

    def state(self, kind: StateKind) -> ParserState:
        try:
            return self._states[kind]
        except KeyError:
            raise StateMachineError(f"No {kind.value} state is registered.") from None

    def switch(self, kind: StateKind) -> None:
        self._current = self.state(kind)
        log.debug(f"Demux switched to {kind.value} state")

    def process(self, chunk: bytes) -> None:
        """
        Feeds one transport read through the state machine.

        Any tail a state hands back is dispatched to the state that is active
        afterwards, repeatedly, so a single read may complete several units.
        """
        if self._current is None:
            if self.start is None:
                raise StateMachineError(
                    "No start state configured for the demux controller."
                )
            self.switch(self.start)

        pending = bytes(chunk)
        while pending:
            pending = self._dispatch(pending)

    def _dispatch(self, chunk: bytes) -> bytes:
        match self._current:
            case HeaderState() as state:
                return _step_header(state, self, chunk)
            case AudioState() as state:
                return _step_audio(state, self, chunk)
            case MetadataState() as state:
                return _step_metadata(state, self, chunk)
        raise StateMachineError(f"Unknown parser state: {self._current!r}")
