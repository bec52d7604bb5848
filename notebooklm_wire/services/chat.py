"""Streaming chat against a notebook."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from notebooklm_wire.exceptions import InvalidInputError, RPCError
from notebooklm_wire.quota.governor import QuotaGovernor
from notebooklm_wire.quota.plans import Operation
from notebooklm_wire.rpc.transport import BatchExecuteTransport
from notebooklm_wire.wire import error_codes
from notebooklm_wire.wire.chat import ChatEvent, ChatStream, aiter_chat_events

logger = logging.getLogger(__name__)


class ChatService:
    """Send prompts to a notebook and decode the streamed answer.

    Each event carries the full answer accumulated so far, so the last event
    of a stream holds the complete response.
    """

    def __init__(self, transport: BatchExecuteTransport, quota: QuotaGovernor):
        self._transport = transport
        self._quota = quota
        self.last_stream: ChatStream | None = None

    async def stream(
        self,
        notebook_id: str,
        prompt: str,
        source_ids: tuple[str, ...] | list[str] = (),
        conversation_id: str | None = None,
    ) -> AsyncIterator[ChatEvent]:
        """Yield chat events as frames arrive.

        Chat quota is checked before the request; usage is recorded only
        when the stream ends without an error event.

        Raises:
            InvalidInputError: Empty notebook id or prompt
            RateLimitError: The daily chat ceiling is reached
        """
        if not notebook_id or not notebook_id.strip():
            raise InvalidInputError("notebook_id is required")
        if not prompt or not prompt.strip():
            raise InvalidInputError("prompt must not be empty")

        self._quota.check_quota(Operation.CHAT)

        stream = ChatStream()
        self.last_stream = stream
        failed = False
        chunks = self._transport.stream_chat(notebook_id, prompt, source_ids, conversation_id)
        async for event in aiter_chat_events(chunks, stream):
            failed = failed or event.is_error
            yield event

        if stream.errors:
            logger.warning("Chat stream finished with %d undecodable frame(s)", len(stream.errors))
        if failed:
            return
        self._quota.record_usage(Operation.CHAT)

    async def ask(
        self,
        notebook_id: str,
        prompt: str,
        source_ids: tuple[str, ...] | list[str] = (),
        conversation_id: str | None = None,
    ) -> ChatEvent:
        """Consume the whole stream and return the final answer.

        Raises:
            RPCError: The stream ended with an error event or produced no answer
        """
        final: ChatEvent | None = None
        async for event in self.stream(notebook_id, prompt, source_ids, conversation_id):
            if event.is_error:
                entry = error_codes.describe(event.error_code or 0)
                raise RPCError(
                    f"Chat failed: {entry.message} (code {event.error_code})",
                    code=event.error_code,
                    retryable=entry.retryable,
                )
            final = event
        if final is None:
            raise RPCError("Chat stream ended without an answer")
        return final
