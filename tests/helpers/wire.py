"""Builders for batchexecute wire payloads used across tests."""

import json
from typing import Any


def frame(payload: str | bytes) -> bytes:
    """Length-prefix ``payload`` (byte length) the way the server does."""
    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    return str(len(data)).encode() + b"\n" + data


def envelope(inner: Any, rpc_id: str | None = None) -> str:
    """A frame payload holding one ``wrb.fr`` envelope with ``inner`` JSON-escaped."""
    return json.dumps([["wrb.fr", rpc_id, json.dumps(inner), None, None, None, "generic"]])


def error_envelope(code: int, rpc_id: str | None = None) -> str:
    return json.dumps([["wrb.fr", rpc_id, None, None, None, [code], "generic"]])


def stream_body(*payloads: str, prefix: bool = True) -> bytes:
    """A full streamed response: XSSI prefix plus one frame per payload."""
    body = b")]}'\n\n" if prefix else b""
    return body + b"\n".join(frame(p) for p in payloads) + b"\n"


def chat_inner(
    text: str,
    conversation_id: str = "conv-1",
    message_id: str = "msg-1",
    timestamp_ms: int = 1700000000000,
    status: int | None = None,
) -> list:
    """Inner payload of one chat answer update."""
    data: list[Any] = [text, None, [conversation_id, message_id, timestamp_ms], None, [1]]
    if status is not None:
        data.extend([None, None, None, status])
    return [data]


def chunked(data: bytes, size: int) -> list[bytes]:
    """Split ``data`` into ``size``-byte network chunks."""
    return [data[i : i + size] for i in range(0, len(data), size)]


async def async_chunks(chunks: list[bytes]):
    for chunk in chunks:
        yield chunk


def artifact_row(
    artifact_id: str = "artifact-0123456789",
    title: str | None = "Study guide",
    type_code: int | float | None = 2,
    state: int | None = 3,
    source_ids: tuple[str, ...] = ("source-aaaaaaaaaa",),
    extra: list | None = None,
) -> list:
    """Positional artifact row: id, title, type, sources, state, then ``extra``."""
    row: list[Any] = [
        artifact_id,
        title,
        type_code,
        [[[source_id]] for source_id in source_ids],
        state,
    ]
    if extra:
        row.extend(extra)
    return row


def media_row(
    artifact_id: str,
    type_code: int,
    url: str,
    title: str = "Overview",
    state: int = 3,
) -> list:
    """Artifact row with a ``[null, url]`` media pair at position 9."""
    return artifact_row(
        artifact_id,
        title,
        type_code,
        state,
        extra=[None, None, None, None, [None, url]],
    )
