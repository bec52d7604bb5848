"""NotebookLM client facade.

Usage:
    async with NotebookLMClient() as client:
        async for event in client.chat.stream(notebook_id, "Summarise the sources"):
            print(event.answer_text)
        url = await client.artifacts.get_video_url(notebook_id)
"""

from __future__ import annotations

import logging

import httpx

from notebooklm_wire.quota.governor import QuotaGovernor
from notebooklm_wire.rpc.transport import BatchExecuteTransport, RPCClientConfig
from notebooklm_wire.services.artifacts import ArtifactService
from notebooklm_wire.services.chat import ChatService
from notebooklm_wire.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class NotebookLMClient:
    """One transport, one quota governor and the services that share them."""

    def __init__(
        self,
        config: RPCClientConfig | None = None,
        *,
        settings: Settings | None = None,
        quota: QuotaGovernor | None = None,
        http_client: httpx.AsyncClient | None = None,
        media_client: httpx.AsyncClient | None = None,
    ):
        settings = settings or get_settings()
        self.settings = settings
        self.transport = BatchExecuteTransport(
            config or RPCClientConfig.from_settings(settings),
            client=http_client,
        )
        self.quota = quota or QuotaGovernor(
            enabled=settings.quota_enabled,
            plan=settings.quota_plan,
            state_path=settings.quota_state_path,
        )
        self.chat = ChatService(self.transport, self.quota)
        self.artifacts = ArtifactService(
            self.transport,
            secondary_cookies=settings.secondary_cookies.get_secret_value(),
            media_client=media_client,
        )

    async def __aenter__(self) -> NotebookLMClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()
        logger.debug("NotebookLM client closed")
