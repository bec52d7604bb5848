"""Length-prefixed frame reassembly for batchexecute streams.

Streamed RPC responses arrive as::

    )]}'
    <decimal length>\\n<exactly that many bytes>
    <decimal length>\\n<exactly that many bytes>
    ...

layered inside HTTP chunked transfer, so network chunk boundaries never line
up with frames. ``FrameReassembler`` buffers the raw bytes and slices out
complete frames as they become available.

Usage:
    reassembler = FrameReassembler()
    async for chunk in response.aiter_bytes():
        for frame in reassembler.feed(chunk):
            handle(frame)
    for frame in reassembler.finish():
        handle(frame)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

XSSI_PREFIX = b")]}'"

# Where a frame header should start: digits, newline, then a wrb.fr envelope
RESYNC_PATTERN = re.compile(rb'(\d+)\n\[\["wrb\.fr"')

# How far ahead to search for the next frame header when realigning
MAX_RESYNC_WINDOW = 1 << 20

# Bytes kept from an unmatched window; enough to hold a split header
RESYNC_TAIL = 64

# Longer digit runs are corruption, not a length header
MAX_HEADER_DIGITS = 12

_WHITESPACE = b" \t\r\n"


class ReassemblerState(str, Enum):
    """Reassembler position within the current frame."""

    AWAITING_HEADER = "awaiting_header"
    AWAITING_BODY = "awaiting_body"
    HAVE_FRAME = "have_frame"


@dataclass(frozen=True)
class Frame:
    """One complete length-prefixed protocol unit."""

    declared_length: int
    payload: bytes

    def __post_init__(self) -> None:
        if len(self.payload) != self.declared_length:
            raise ValueError(
                f"Frame payload is {len(self.payload)} bytes, declared {self.declared_length}"
            )

    def text(self) -> str:
        """Payload decoded as UTF-8 (invalid sequences replaced)."""
        return self.payload.decode("utf-8", errors="replace")


class FrameReassembler:
    """Buffer stream chunks and emit complete frames in order.

    An explicit state machine: ``AWAITING_HEADER`` until a full
    ``<digits>\\n`` header is buffered, ``AWAITING_BODY`` until the declared
    number of bytes is buffered, then ``HAVE_FRAME`` while the frame is
    handed out. Frames are produced lazily; no work happens between pulls.

    One instance serves one response. Re-issuing the request means
    constructing a new reassembler.
    """

    def __init__(self, *, max_resync_window: int = MAX_RESYNC_WINDOW):
        self._buffer = bytearray()
        self._state = ReassemblerState.AWAITING_HEADER
        self._header_length = 0
        self._body_length = 0
        self._prefix_checked = False
        self._max_resync_window = max_resync_window
        self.frames_emitted = 0
        self.bytes_discarded = 0

    @property
    def state(self) -> ReassemblerState:
        return self._state

    @property
    def pending_bytes(self) -> int:
        """Number of buffered bytes not yet emitted as frames."""
        return len(self._buffer)

    def feed(self, chunk: bytes | str) -> Iterator[Frame]:
        """Append a chunk and return an iterator over newly completed frames.

        The chunk is buffered immediately; frames are sliced as the returned
        iterator is pulled. Text chunks are encoded as UTF-8.
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buffer.extend(chunk)
        return self._drain()

    def finish(self) -> list[Frame]:
        """Drain remaining complete frames once the transport has closed."""
        frames = list(self._drain())
        if self._buffer:
            logger.debug(
                "Stream closed with %d unframed bytes (state=%s)",
                len(self._buffer),
                self._state.value,
            )
        return frames

    def _drain(self) -> Iterator[Frame]:
        while True:
            frame = self._next_frame()
            if frame is None:
                return
            yield frame

    def _next_frame(self) -> Frame | None:
        """Advance the state machine until a frame is ready or input runs out."""
        while True:
            if self._state is ReassemblerState.HAVE_FRAME:
                self._state = ReassemblerState.AWAITING_HEADER

            if self._state is ReassemblerState.AWAITING_HEADER:
                if not self._read_header():
                    return None

            # AWAITING_BODY
            end = self._header_length + self._body_length
            if len(self._buffer) < end:
                return None

            payload = bytes(self._buffer[self._header_length : end])
            del self._buffer[:end]
            self._state = ReassemblerState.HAVE_FRAME
            self.frames_emitted += 1
            return Frame(declared_length=self._body_length, payload=payload)

    def _read_header(self) -> bool:
        """Parse a length header at the buffer start.

        Returns True and moves to AWAITING_BODY when a complete header is
        buffered. Returns False when more data is needed.
        """
        while True:
            if not self._strip_prefix():
                return False
            self._strip_whitespace()
            if not self._buffer:
                return False

            if not self._buffer[:1].isdigit():
                if not self._resync(0):
                    return False
                continue

            digits = _leading_digits(self._buffer)
            if digits > MAX_HEADER_DIGITS:
                if digits == len(self._buffer) and digits <= self._max_resync_window:
                    # Digit run may continue in the next chunk
                    return False
                logger.warning("Length header of %d digits, discarding it", digits)
                del self._buffer[:digits]
                self.bytes_discarded += digits
                continue

            if digits == len(self._buffer):
                # Header split across chunks
                return False

            if self._buffer[digits] != 0x0A:
                logger.warning(
                    "Length header not followed by newline (got %r), realigning",
                    bytes(self._buffer[digits : digits + 1]),
                )
                if not self._resync(digits):
                    return False
                continue

            self._body_length = int(self._buffer[:digits])
            self._header_length = digits + 1
            self._state = ReassemblerState.AWAITING_BODY
            return True

    def _strip_prefix(self) -> bool:
        """Remove the one-time XSSI marker at stream start."""
        if self._prefix_checked:
            return True
        stripped = self._buffer.lstrip(_WHITESPACE)
        if not stripped:
            return False
        if stripped.startswith(XSSI_PREFIX):
            del self._buffer[: len(self._buffer) - len(stripped) + len(XSSI_PREFIX)]
        elif XSSI_PREFIX.startswith(stripped):
            # Marker split across chunks
            return False
        self._prefix_checked = True
        return True

    def _strip_whitespace(self) -> None:
        leading = len(self._buffer) - len(self._buffer.lstrip(_WHITESPACE))
        if leading:
            del self._buffer[:leading]

    def _resync(self, start: int) -> bool:
        """Skip to the next plausible frame header at or after ``start``.

        Returns True when the buffer now starts at a header candidate.
        """
        window_end = start + self._max_resync_window
        match = RESYNC_PATTERN.search(self._buffer, start, window_end)
        if match is not None:
            skipped = match.start()
            logger.warning("Skipping %d bytes of unframed data", skipped)
            del self._buffer[:skipped]
            self.bytes_discarded += skipped
            return True

        if len(self._buffer) > self._max_resync_window:
            dropped = len(self._buffer) - RESYNC_TAIL
            logger.warning("No frame header within %d bytes, dropping them", dropped)
            del self._buffer[:dropped]
            self.bytes_discarded += dropped
        return False


def _leading_digits(buffer: bytearray) -> int:
    count = 0
    for byte in buffer:
        if 0x30 <= byte <= 0x39:
            count += 1
        else:
            break
    return count


def split_frames(body: bytes | str) -> list[Frame]:
    """Split a fully buffered response body into frames."""
    reassembler = FrameReassembler()
    frames = list(reassembler.feed(body))
    frames.extend(reassembler.finish())
    return frames
