"""Chat event decoding for GenerateFreeFormStreamed responses.

Each DATA frame of a chat stream carries the full answer accumulated so far::

    [[text, null, [conversation_id, message_id, timestamp_ms], null,
      formatting, ..., status_code (index 8), ...], ...]

``decode_chat_event`` turns one such inner payload into a ``ChatEvent``;
``ChatStream`` glues the frame reassembler and the decoder together for a
live response body.
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass, field
from typing import Any

from notebooklm_wire.exceptions import ProtocolFrameError
from notebooklm_wire.wire.envelope import DecodedFrame, FrameKind, decode_frame
from notebooklm_wire.wire.frames import Frame, FrameReassembler

logger = logging.getLogger(__name__)

# Status values in slot 8 that mark a failed answer
ERROR_STATUS_CODES = frozenset({4, 139})

BOLD_SPAN = re.compile(r"\*\*([^*]+)\*\*")
CITATION_GROUP = re.compile(r"\[(\d+(?:\s*,\s*\d+)*)\]")


@dataclass(frozen=True)
class ChatEvent:
    """One decoded chat stream update."""

    raw_text: str
    answer_text: str
    reasoning_segments: tuple[str, ...] = ()
    citations: tuple[int, ...] = ()
    conversation_id: str | None = None
    message_id: str | None = None
    timestamp_ms: int | None = None
    status_code: int | None = None
    is_error: bool = False
    error_code: int | None = None
    formatting: Any = field(default=None, compare=False)
    chunk_number: int = 0
    byte_count: int = 0

    @property
    def is_reasoning(self) -> bool:
        return bool(self.reasoning_segments) and not self.answer_text

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_text": self.raw_text,
            "answer_text": self.answer_text,
            "reasoning_segments": list(self.reasoning_segments),
            "citations": list(self.citations),
            "conversation_id": self.conversation_id,
            "message_id": self.message_id,
            "timestamp_ms": self.timestamp_ms,
            "status_code": self.status_code,
            "is_error": self.is_error,
            "error_code": self.error_code,
            "chunk_number": self.chunk_number,
        }


def split_reasoning(text: str) -> tuple[tuple[str, ...], str]:
    """Split ``**bold**`` reasoning headers from the answer text.

    Returns:
        (reasoning segments in order, answer text with the spans removed)
    """
    segments = tuple(match.group(1).strip() for match in BOLD_SPAN.finditer(text))
    answer = BOLD_SPAN.sub("", text).strip()
    return segments, answer


def extract_citations(text: str) -> tuple[int, ...]:
    """Citation numbers from ``[1]`` / ``[2, 3]`` groups, unique, first-seen order."""
    seen: dict[int, None] = {}
    for group in CITATION_GROUP.finditer(text):
        for number in group.group(1).split(","):
            seen.setdefault(int(number), None)
    return tuple(seen)


def decode_chat_event(inner: Any, *, chunk_number: int = 0, byte_count: int = 0) -> ChatEvent:
    """Build a ChatEvent from a decoded inner payload.

    Raises:
        ProtocolFrameError: If the payload does not have the chat answer shape
    """
    if not isinstance(inner, list) or not inner or not isinstance(inner[0], list) or not inner[0]:
        raise ProtocolFrameError("Chat payload is not a non-empty answer array")

    data = inner[0]
    text = data[0]
    if not isinstance(text, str):
        text = "" if text is None else str(text)

    conversation_id = message_id = None
    timestamp_ms = None
    metadata = data[2] if len(data) > 2 else None
    if isinstance(metadata, list) and len(metadata) >= 3:
        conversation_id = metadata[0] if isinstance(metadata[0], str) else None
        message_id = metadata[1] if isinstance(metadata[1], str) else None
        if isinstance(metadata[2], (int, float)) and not isinstance(metadata[2], bool):
            timestamp_ms = int(metadata[2])

    status = data[8] if len(data) > 8 else None
    status_code = status if isinstance(status, int) and not isinstance(status, bool) else None
    is_error = status_code in ERROR_STATUS_CODES

    reasoning, answer = split_reasoning(text)
    return ChatEvent(
        raw_text=text,
        answer_text=answer,
        reasoning_segments=reasoning,
        citations=extract_citations(text),
        conversation_id=conversation_id,
        message_id=message_id,
        timestamp_ms=timestamp_ms,
        status_code=status_code,
        is_error=is_error,
        error_code=status_code if is_error else None,
        formatting=data[4] if len(data) > 4 else None,
        chunk_number=chunk_number,
        byte_count=byte_count,
    )


def error_event(code: int, *, chunk_number: int = 0, byte_count: int = 0) -> ChatEvent:
    """ChatEvent for an envelope that only carries an error code."""
    return ChatEvent(
        raw_text="",
        answer_text="",
        is_error=True,
        error_code=code,
        chunk_number=chunk_number,
        byte_count=byte_count,
    )


class ChatStream:
    """Turn raw chat response chunks into ChatEvents.

    Partial and control frames are dropped. Frames that fail to decode are
    logged and collected in ``errors``; the stream keeps going.
    """

    def __init__(self, reassembler: FrameReassembler | None = None):
        self._reassembler = reassembler or FrameReassembler()
        self._events = 0
        self.errors: list[ProtocolFrameError] = []
        self.partial_frames = 0

    @property
    def events_emitted(self) -> int:
        return self._events

    def feed(self, chunk: bytes | str) -> Iterator[ChatEvent]:
        """Buffer a chunk and yield the chat events it completes."""
        for frame in self._reassembler.feed(chunk):
            event = self._handle(frame)
            if event is not None:
                yield event

    def finish(self) -> list[ChatEvent]:
        """Flush events from frames still buffered when the body ends."""
        events = []
        for frame in self._reassembler.finish():
            event = self._handle(frame)
            if event is not None:
                events.append(event)
        return events

    def _handle(self, frame: Frame) -> ChatEvent | None:
        try:
            decoded = decode_frame(frame)
            return self._to_event(decoded)
        except ProtocolFrameError as e:
            logger.warning("Dropping undecodable chat frame (%d bytes): %s", frame.declared_length, e)
            self.errors.append(e)
            return None

    def _to_event(self, decoded: DecodedFrame) -> ChatEvent | None:
        if decoded.kind is FrameKind.PARTIAL:
            self.partial_frames += 1
            return None
        if decoded.kind is FrameKind.CONTROL:
            return None

        number = self._events + 1
        if decoded.kind is FrameKind.ERROR and decoded.error_code is not None:
            logger.info("Chat stream returned error code %s", decoded.error_code)
            event = error_event(
                decoded.error_code,
                chunk_number=number,
                byte_count=decoded.declared_length,
            )
        else:
            event = decode_chat_event(
                decoded.inner,
                chunk_number=number,
                byte_count=decoded.declared_length,
            )
        self._events = number
        return event


async def aiter_chat_events(
    chunks: AsyncIterator[bytes],
    stream: ChatStream | None = None,
) -> AsyncIterator[ChatEvent]:
    """Decode an async byte stream (e.g. ``response.aiter_bytes()``) into events."""
    stream = stream or ChatStream()
    async for chunk in chunks:
        for event in stream.feed(chunk):
            yield event
    for event in stream.finish():
        yield event
