"""Decoding of ``wrb.fr`` envelopes carried inside frames.

Every streamed unit is a JSON array of envelopes::

    [["wrb.fr", <rpc id or null>, "<JSON-escaped inner payload>", ...]]

or, for errors::

    [["wrb.fr", null, null, null, null, [<error code>]]]

The inner payload is itself JSON and has to be parsed a second time.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from notebooklm_wire.exceptions import ProtocolFrameError
from notebooklm_wire.wire.frames import Frame

logger = logging.getLogger(__name__)

ENVELOPE_TAG = "wrb.fr"

# Trailing protocol markers occasionally glued onto the JSON text
MAX_TRAILING_TRIM = 10

_TRAILING_MARKER_CHARS = "0123456789 \t\r\n"


class FrameKind(str, Enum):
    """What a decoded frame turned out to contain."""

    DATA = "data"
    ERROR = "error"
    PARTIAL = "partial"
    CONTROL = "control"


@dataclass(frozen=True)
class DecodedFrame:
    """Result of decoding one frame payload.

    ``inner`` holds the twice-parsed payload for DATA frames; ``error_code``
    is set for ERROR frames.
    """

    kind: FrameKind
    declared_length: int
    rpc_id: str | None = None
    inner: Any = None
    error_code: int | None = None


def is_truncation(exc: json.JSONDecodeError) -> bool:
    """Whether a parse failure means the text was cut off mid-token.

    Such frames are superseded incremental updates, not failures.
    """
    if exc.msg.startswith("Unterminated string"):
        return True
    return exc.pos >= len(exc.doc.rstrip())


def loads_lenient(text: str) -> Any:
    """Parse JSON, retrying without trailing length digits or whitespace.

    Raises:
        json.JSONDecodeError: The original error if no trimmed variant parses
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        original = exc

    candidate = text
    for _ in range(MAX_TRAILING_TRIM):
        if not candidate or candidate[-1] not in _TRAILING_MARKER_CHARS:
            break
        candidate = candidate[:-1]
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise original


def decode_frame(frame: Frame) -> DecodedFrame:
    """Decode a frame's payload into its envelope contents.

    Returns:
        DecodedFrame whose kind is DATA, ERROR, PARTIAL or CONTROL

    Raises:
        ProtocolFrameError: If the payload is complete but undecodable
    """
    text = frame.text().strip()
    length = frame.declared_length

    try:
        outer = loads_lenient(text)
    except json.JSONDecodeError as exc:
        if is_truncation(exc):
            return DecodedFrame(kind=FrameKind.PARTIAL, declared_length=length)
        raise ProtocolFrameError(
            f"Frame payload is not JSON: {exc.msg} at position {exc.pos}",
            payload=frame.payload,
        ) from exc

    envelope = find_envelope(outer)
    if envelope is None:
        return DecodedFrame(kind=FrameKind.CONTROL, declared_length=length)

    rpc_id = envelope[1] if len(envelope) > 1 and isinstance(envelope[1], str) else None
    escaped = envelope[2] if len(envelope) > 2 else None

    if not isinstance(escaped, str):
        code = envelope_error_code(envelope)
        if code is not None:
            return DecodedFrame(
                kind=FrameKind.ERROR, declared_length=length, rpc_id=rpc_id, error_code=code
            )
        return DecodedFrame(kind=FrameKind.CONTROL, declared_length=length, rpc_id=rpc_id)

    try:
        inner = json.loads(escaped)
    except json.JSONDecodeError as exc:
        if is_truncation(exc):
            return DecodedFrame(kind=FrameKind.PARTIAL, declared_length=length, rpc_id=rpc_id)
        raise ProtocolFrameError(
            f"Envelope payload is not JSON: {exc.msg} at position {exc.pos}",
            payload=frame.payload,
        ) from exc

    return DecodedFrame(kind=FrameKind.DATA, declared_length=length, rpc_id=rpc_id, inner=inner)


def find_envelope(outer: Any) -> list | None:
    """Return the first ``wrb.fr`` envelope in a parsed frame, if any."""
    if not isinstance(outer, list):
        return None
    for row in outer:
        if isinstance(row, list) and row and row[0] == ENVELOPE_TAG:
            return row
    return None


def envelope_error_code(envelope: list) -> int | None:
    """Error code from the 6-element error form, ``[..., [code]]`` at index 5."""
    if len(envelope) > 5 and isinstance(envelope[5], list) and envelope[5]:
        code = envelope[5][0]
        if isinstance(code, int) and not isinstance(code, bool):
            return code
    return None
