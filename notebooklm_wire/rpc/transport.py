"""Authenticated batchexecute transport.

Posts ``f.req`` / ``at`` form bodies to the NotebookLM RPC endpoint and
decodes the chunked responses. Also opens the chat streaming endpoint,
whose body is decoded incrementally by the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import AsyncIterator, Callable
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, Field

from notebooklm_wire.exceptions import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    ProtocolFrameError,
    RPCError,
)
from notebooklm_wire.rpc.methods import BATCHEXECUTE_PATH, STREAM_PATH
from notebooklm_wire.settings import Settings, get_settings
from notebooklm_wire.wire.batch import RPCResult, decode_batch_response, raise_for_result, select_result
from notebooklm_wire.wire.error_codes import RETRYABLE_HTTP_STATUSES

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"

STREAM_HEADERS = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-origin",
    "x-goog-ext-353267353-jspb": "[null,null,null,282611]",
    "x-same-domain": "1",
}


class RPCClientConfig(BaseModel):
    """Configuration for the batchexecute transport."""

    auth_token: str = Field(..., description="CSRF token sent as the 'at' form field")
    cookies: str = Field(..., description="Primary-domain Cookie header")
    base_url: str = Field(default="https://notebooklm.google.com")
    build_label: str = Field(..., description="'bl' query parameter")
    session_id: str = Field(..., description="'f.sid' query parameter")
    language: str = Field(default="en")
    authuser: str = Field(default="0")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    stream_timeout: float = Field(default=120.0, gt=0)
    max_retries: int = Field(default=1, ge=0)
    retry_delay: float = Field(default=1.0, ge=0, description="Base backoff in seconds")
    retry_max_delay: float = Field(default=5.0, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RPCClientConfig:
        settings = settings or get_settings()
        return cls(
            auth_token=settings.auth_token.get_secret_value(),
            cookies=settings.cookies.get_secret_value(),
            base_url=settings.base_url,
            build_label=settings.build_label,
            session_id=settings.session_id,
            language=settings.language,
            authuser=settings.authuser,
            timeout=settings.request_timeout,
            stream_timeout=settings.stream_timeout,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
            retry_max_delay=settings.retry_max_delay,
        )


class ReqIdGenerator:
    """``_reqid`` values: a random 4-digit base plus 100000 per request."""

    def __init__(self, base: int | None = None):
        self.base = base if base is not None else random.randint(1000, 9999)
        self.sequence = 0

    def next(self) -> str:
        reqid = self.base + self.sequence * 100000
        self.sequence += 1
        return str(reqid)

    def reset(self) -> None:
        self.sequence = 0


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Exponential delay before retry ``attempt`` (1-based), capped."""
    return min(base * 2 ** (attempt - 1), maximum)


def encode_rpc_request(rpc_id: str, args: Any) -> str:
    """``f.req`` value for a single RPC call."""
    return json.dumps([[[rpc_id, json.dumps(args, separators=(",", ":")), None, "generic"]]])


def encode_chat_request(
    notebook_id: str,
    prompt: str,
    source_ids: tuple[str, ...] | list[str] = (),
    conversation_id: str | None = None,
) -> str:
    """``f.req`` value for a GenerateFreeFormStreamed call.

    Without source ids the conversation id (or notebook id) is sent as the
    single context item.
    """
    if source_ids:
        context = [[[source_id]] for source_id in source_ids]
    else:
        context = [[[conversation_id or notebook_id]]]
    inner = [context, prompt, None, [2, None, [1]], notebook_id]
    return json.dumps([None, json.dumps(inner, separators=(",", ":"))])


class BatchExecuteTransport:
    """HTTP transport for batchexecute RPCs and the chat stream.

    Uses a lazily created, shared ``httpx.AsyncClient``; call ``close()``
    (or use as an async context manager) to release connections.
    """

    def __init__(
        self,
        config: RPCClientConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Any] | None = None,
        reqids: ReqIdGenerator | None = None,
    ):
        self.config = config or RPCClientConfig.from_settings()
        self._http_client = client
        self._owns_client = client is None
        self._sleep = sleep or asyncio.sleep
        self._reqids = reqids or ReqIdGenerator()

    async def __aenter__(self) -> BatchExecuteTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.config.timeout,
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release connections."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def update_cookies(self, cookies: str) -> None:
        self.config = self.config.model_copy(update={"cookies": cookies})

    # ─── URLs & bodies ────────────────────────────────────────────────────────

    def rpc_params(self, rpc_id: str, notebook_id: str | None = None) -> dict[str, str]:
        params = {
            "rpcids": rpc_id,
            "_reqid": self._reqids.next(),
            "bl": self.config.build_label,
            "f.sid": self.config.session_id,
            "hl": self.config.language,
            "authuser": self.config.authuser,
            "rt": "c",
        }
        if notebook_id:
            params["source-path"] = f"/notebook/{notebook_id}"
        return params

    def stream_params(self, notebook_id: str) -> dict[str, str]:
        return {
            "bl": self.config.build_label,
            "f.sid": self.config.session_id,
            "hl": self.config.language,
            "authuser": self.config.authuser,
            "pageId": "none",
            "_reqid": self._reqids.next(),
            "rt": "c",
            "source-path": f"/notebook/{notebook_id}",
        }

    def _headers(self) -> dict[str, str]:
        if not self.config.cookies:
            raise ConfigurationError("No cookies configured (set NOTEBOOKLM_COOKIES)")
        return {
            "Content-Type": FORM_CONTENT_TYPE,
            "Origin": self.config.base_url,
            "Referer": f"{self.config.base_url}/",
            "Cookie": self.config.cookies,
        }

    def _form(self, f_req: str) -> str:
        return urlencode({"f.req": f_req, "at": self.config.auth_token})

    # ─── RPC ──────────────────────────────────────────────────────────────────

    async def call(self, rpc_id: str, args: Any, notebook_id: str | None = None) -> Any:
        """Execute one RPC and return its decoded payload.

        Raises:
            AuthenticationError: HTTP 401
            RPCError: Non-2xx status or an error code in the response
            NetworkError: Transport failure after all retries
        """
        result = await self.call_result(rpc_id, args, notebook_id)
        return result.data

    async def call_result(self, rpc_id: str, args: Any, notebook_id: str | None = None) -> RPCResult:
        url = f"{self.config.base_url}{BATCHEXECUTE_PATH}"
        body = self._form(encode_rpc_request(rpc_id, args))
        headers = self._headers()
        max_attempts = self.config.max_retries + 1

        for attempt in range(max_attempts):
            if attempt:
                delay = backoff_delay(attempt, self.config.retry_delay, self.config.retry_max_delay)
                logger.info("Retrying RPC %s (attempt %d/%d) in %.1fs", rpc_id, attempt + 1, max_attempts, delay)
                await self._sleep(delay)

            last_attempt = attempt == max_attempts - 1
            try:
                response = await self._get_http_client().post(
                    url,
                    params=self.rpc_params(rpc_id, notebook_id),
                    headers=headers,
                    content=body,
                )
            except httpx.TimeoutException as exc:
                if not last_attempt:
                    logger.warning("RPC %s timed out", rpc_id)
                    continue
                raise NetworkError(f"RPC {rpc_id} timed out", retryable=True) from exc
            except httpx.TransportError as exc:
                if not last_attempt:
                    logger.warning("RPC %s transport error: %s", rpc_id, exc)
                    continue
                raise NetworkError(f"RPC {rpc_id} failed: {exc}", retryable=True) from exc

            status = response.status_code
            if status in RETRYABLE_HTTP_STATUSES and not last_attempt:
                logger.warning("RPC %s returned HTTP %d", rpc_id, status)
                continue
            if status == 401:
                raise AuthenticationError("Authentication failed (401); check cookies and auth token")
            if not response.is_success:
                raise RPCError(
                    f"RPC {rpc_id} failed: HTTP {status}",
                    rpc_id,
                    status_code=status,
                    retryable=status in RETRYABLE_HTTP_STATUSES,
                )

            try:
                results = decode_batch_response(response.content)
            except ProtocolFrameError as exc:
                raise RPCError(f"RPC {rpc_id} returned an undecodable body: {exc}", rpc_id) from exc

            result = select_result(results, rpc_id)
            try:
                raise_for_result(result, status_code=status)
            except RPCError as exc:
                if exc.retryable and not last_attempt:
                    logger.warning("RPC %s returned retryable error code %s", rpc_id, exc.code)
                    continue
                raise
            logger.debug("RPC %s succeeded", rpc_id)
            return result

        raise NetworkError(f"RPC {rpc_id} failed after {max_attempts} attempts")

    # ─── Streaming ────────────────────────────────────────────────────────────

    async def stream_chat(
        self,
        notebook_id: str,
        prompt: str,
        source_ids: tuple[str, ...] | list[str] = (),
        conversation_id: str | None = None,
    ) -> AsyncIterator[bytes]:
        """Open the chat stream and yield raw body chunks as they arrive.

        Raises:
            AuthenticationError: HTTP 401
            RPCError: Any other non-2xx status
            NetworkError: Timeout or dropped connection
        """
        url = f"{self.config.base_url}{STREAM_PATH}"
        form = self._form(encode_chat_request(notebook_id, prompt, source_ids, conversation_id))
        headers = {**STREAM_HEADERS, **self._headers()}
        request = self._get_http_client().build_request(
            "POST",
            url,
            params=self.stream_params(notebook_id),
            headers=headers,
            content=form,
            timeout=self.config.stream_timeout,
        )

        try:
            response = await self._get_http_client().send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise NetworkError("Chat stream timed out", retryable=True) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Chat stream failed: {exc}", retryable=True) from exc

        try:
            if response.status_code == 401:
                raise AuthenticationError("Authentication failed (401); check cookies and auth token")
            if not response.is_success:
                raise RPCError(
                    f"Chat stream failed: HTTP {response.status_code}",
                    status_code=response.status_code,
                    retryable=response.status_code in RETRYABLE_HTTP_STATUSES,
                )
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as exc:
            raise NetworkError("Chat stream timed out", retryable=True) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Chat stream interrupted: {exc}", retryable=True) from exc
        finally:
            await response.aclose()
