"""Decoding of complete (non-streamed) batchexecute response bodies.

A batchexecute body uses the same length-prefixed framing as the streaming
endpoint; each frame holds one or more rows::

    [["wrb.fr", "<rpc id>", "<escaped JSON>", null, null, null, "generic"],
     ["di", 123], ["af.httprm", 122, "...", 4]]

Some error paths instead return a bare JSON array or a bare numeric code.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from notebooklm_wire.exceptions import ProtocolFrameError, RPCError
from notebooklm_wire.wire import error_codes
from notebooklm_wire.wire.envelope import ENVELOPE_TAG, envelope_error_code, loads_lenient
from notebooklm_wire.wire.frames import XSSI_PREFIX, split_frames

logger = logging.getLogger(__name__)

# Bare numeric bodies longer than this are not error codes
MAX_NUMERIC_BODY = 10


@dataclass(frozen=True)
class RPCResult:
    """One ``wrb.fr`` row of a batchexecute response."""

    rpc_id: str | None
    data: Any = None
    error_code: int | None = None
    index: int = 0

    @property
    def is_error(self) -> bool:
        return self.error_code is not None


def decode_batch_response(body: bytes | str) -> list[RPCResult]:
    """Decode a full response body into its RPC results.

    Raises:
        ProtocolFrameError: If the body holds no recognisable result
    """
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    text = text.strip()
    if text.startswith(XSSI_PREFIX.decode()):
        text = text[len(XSSI_PREFIX) :].strip()
    if not text:
        raise ProtocolFrameError("Empty response body")

    if text[0].isdigit():
        numeric = _numeric_code(text)
        if numeric is not None:
            if numeric in (0, 1):
                return [RPCResult(rpc_id=None, data=numeric)]
            return [RPCResult(rpc_id=None, error_code=numeric)]
        rows = _rows_from_frames(text)
    else:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProtocolFrameError(f"Failed to parse response: {exc.msg}") from exc
        rows = parsed if isinstance(parsed, list) else []
        if rows and not isinstance(rows[0], list):
            rows = [rows]

    results = [result for row in rows if (result := _result_from_row(row)) is not None]
    if not results:
        raise ProtocolFrameError("No wrb.fr results found in response")
    return results


def _numeric_code(text: str) -> int | None:
    if len(text) <= MAX_NUMERIC_BODY and text.isdigit():
        return int(text)
    return None


def _rows_from_frames(text: str) -> list[Any]:
    rows: list[Any] = []
    for frame in split_frames(text):
        try:
            parsed = loads_lenient(frame.text().strip())
        except json.JSONDecodeError as exc:
            logger.warning("Skipping undecodable response frame: %s", exc.msg)
            continue
        if isinstance(parsed, list):
            rows.extend(row for row in parsed if isinstance(row, list))
    return rows


def _result_from_row(row: Any) -> RPCResult | None:
    if not isinstance(row, list) or not row or row[0] != ENVELOPE_TAG:
        return None

    rpc_id = row[1] if len(row) > 1 and isinstance(row[1], str) else None
    index = 0
    if len(row) > 6 and isinstance(row[6], str) and row[6] != "generic":
        index = int(row[6]) if row[6].isdigit() else 0

    payload = row[2] if len(row) > 2 else None
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            data = payload
        if isinstance(data, int) and not isinstance(data, bool) and data not in (0, 1):
            return RPCResult(rpc_id=rpc_id, data=data, error_code=data, index=index)
        return RPCResult(rpc_id=rpc_id, data=data, index=index)

    code = envelope_error_code(row)
    if code is not None:
        return RPCResult(rpc_id=rpc_id, error_code=code, index=index)
    return RPCResult(rpc_id=rpc_id, data=payload, index=index)


def raise_for_result(result: RPCResult, status_code: int | None = None) -> None:
    """Raise RPCError when a result carries an error code."""
    if result.error_code is None:
        return
    entry = error_codes.describe(result.error_code)
    raise RPCError(
        f"RPC {result.rpc_id or '?'} failed: {entry.message} (code {result.error_code})",
        result.rpc_id,
        code=result.error_code,
        status_code=status_code,
        retryable=entry.retryable,
    )


def select_result(results: list[RPCResult], rpc_id: str) -> RPCResult:
    """The result for ``rpc_id``, falling back to the first result."""
    for result in results:
        if result.rpc_id == rpc_id:
            return result
    return results[0]
