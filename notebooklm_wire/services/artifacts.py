"""Artifact operations: listing, lookup and media retrieval."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from notebooklm_wire.entities import resolver
from notebooklm_wire.entities.models import DomainEntity, EntityKind, EntityState
from notebooklm_wire.exceptions import ArtifactNotFoundError, InvalidInputError, RPCError
from notebooklm_wire.media.cookies import merge_cookie_headers
from notebooklm_wire.media.images import InfographicImage, download_image, parse_image_dimensions
from notebooklm_wire.media.redirects import AuthenticatedRedirectDownloader, ensure_authuser
from notebooklm_wire.rpc import methods
from notebooklm_wire.rpc.transport import BatchExecuteTransport
from notebooklm_wire.wire.nodes import ListNode

logger = logging.getLogger(__name__)


class ArtifactService:
    """Read and manage the generated artifacts of a notebook.

    Media downloads authenticate with the transport's primary cookies plus
    optional secondary-domain (google.com) cookies.
    """

    def __init__(
        self,
        transport: BatchExecuteTransport,
        *,
        secondary_cookies: str = "",
        media_client: httpx.AsyncClient | None = None,
    ):
        self._transport = transport
        self._secondary_cookies = secondary_cookies
        self._media_client = media_client

    @property
    def authuser(self) -> str:
        return self._transport.config.authuser

    # ─── Lookup ───────────────────────────────────────────────────────────────

    async def list(
        self,
        notebook_id: str,
        kind: EntityKind | None = None,
        state: EntityState | None = None,
    ) -> list[DomainEntity]:
        """List artifacts of a notebook, optionally filtered by kind and state."""
        _require(notebook_id, "notebook_id")
        data = await self._transport.call(
            methods.LIST_ARTIFACTS, methods.list_artifacts_args(notebook_id), notebook_id
        )
        artifacts = resolver.resolve_list(data)
        if kind is not None:
            artifacts = [a for a in artifacts if a.kind is kind]
        if state is not None:
            artifacts = [a for a in artifacts if a.state is state]
        logger.debug("Listed %d artifact(s) in notebook %s", len(artifacts), notebook_id)
        return artifacts

    async def get(self, artifact_id: str, notebook_id: str | None = None) -> DomainEntity:
        """Fetch one artifact.

        The get endpoint answers 400 for some artifact kinds; when a notebook
        id is known the artifact is then looked up in the notebook listing.

        Raises:
            ArtifactNotFoundError: Neither lookup produced the artifact
            RPCError: The get call failed for any other reason
        """
        _require(artifact_id, "artifact_id")
        try:
            data = await self._transport.call(
                methods.GET_ARTIFACT, methods.get_artifact_args(artifact_id), notebook_id
            )
        except RPCError as e:
            if e.status_code != 400 or not notebook_id:
                raise
            logger.info("Get artifact %s returned 400, falling back to list", artifact_id)
            return await self._find_in_list(artifact_id, notebook_id)

        entity = resolver.resolve(data)
        if entity is None:
            raise ArtifactNotFoundError(f"Artifact {artifact_id} not found", artifact_id=artifact_id)
        return entity

    async def rename(self, artifact_id: str, title: str) -> DomainEntity | None:
        """Rename an artifact; returns the updated entity when the response carries it."""
        _require(artifact_id, "artifact_id")
        _require(title, "title")
        data = await self._transport.call(
            methods.RENAME_ARTIFACT, methods.rename_artifact_args(artifact_id, title)
        )
        return resolver.resolve(data)

    async def delete(self, artifact_id: str) -> None:
        _require(artifact_id, "artifact_id")
        await self._transport.call(methods.DELETE_ARTIFACT, methods.delete_artifact_args(artifact_id))
        logger.info("Deleted artifact %s", artifact_id)

    async def _find_in_list(self, artifact_id: str, notebook_id: str) -> DomainEntity:
        data = await self._transport.call(
            methods.LIST_ARTIFACTS, methods.list_artifacts_args(notebook_id), notebook_id
        )
        entity = resolver.find_entity(data, artifact_id)
        if entity is None:
            raise ArtifactNotFoundError(
                f"Artifact {artifact_id} not found in notebook {notebook_id}",
                artifact_id=artifact_id,
            )
        return entity

    # ─── Video ────────────────────────────────────────────────────────────────

    async def find_video(self, notebook_id: str) -> DomainEntity:
        """First video artifact of the notebook that carries a media URL.

        Raises:
            ArtifactNotFoundError: No such artifact
        """
        for artifact in await self.list(notebook_id, kind=EntityKind.VIDEO):
            if artifact.media_url:
                return artifact
        raise ArtifactNotFoundError(
            f"No video URL found in notebook {notebook_id}; create a video overview first"
        )

    def _downloader(
        self,
        url: str,
        cookies: str | None = None,
        secondary_cookies: str | None = None,
    ) -> AuthenticatedRedirectDownloader:
        primary = cookies or self._transport.config.cookies
        secondary = secondary_cookies if secondary_cookies is not None else self._secondary_cookies
        if not merge_cookie_headers(secondary, primary):
            raise InvalidInputError("Cookies are required to follow media redirects")
        return AuthenticatedRedirectDownloader(
            url,
            primary,
            secondary,
            client=self._media_client,
            authuser=self.authuser,
        )

    async def get_video_url(
        self,
        notebook_id: str,
        *,
        cookies: str | None = None,
        secondary_cookies: str | None = None,
    ) -> str:
        """Signed, directly downloadable URL of the notebook's video overview.

        Raises:
            ArtifactNotFoundError: The notebook has no video with a media URL
            AuthenticationError: The redirect chain ended on a login page
            DownloadError: The redirect chain could not be followed
        """
        video = await self.find_video(notebook_id)
        async with self._downloader(video.media_url, cookies, secondary_cookies) as downloader:
            return await downloader.resolve()

    async def download_video(
        self,
        notebook_id: str,
        path: str | Path | None = None,
        *,
        cookies: str | None = None,
        secondary_cookies: str | None = None,
    ) -> bytes | Path:
        """Download the notebook's video overview.

        Returns:
            The written path when ``path`` is given, otherwise the video bytes
        """
        video = await self.find_video(notebook_id)
        async with self._downloader(video.media_url, cookies, secondary_cookies) as downloader:
            if path is not None:
                target = await downloader.download_to(path)
                logger.info("Saved video for notebook %s to %s", notebook_id, target)
                return target
            return await downloader.download()

    # ─── Infographics ─────────────────────────────────────────────────────────

    async def fetch_infographic(
        self,
        artifact_id: str,
        notebook_id: str | None = None,
        *,
        download: bool = False,
        cookies: str | None = None,
    ) -> InfographicImage:
        """Image URL (and optionally bytes) of an infographic artifact.

        Raises:
            ArtifactNotFoundError: The artifact or its image URL was not found
            InvalidInputError: ``download`` without any cookies
        """
        _require(artifact_id, "artifact_id")
        try:
            data = await self._transport.call(
                methods.GET_ARTIFACT, methods.get_artifact_args(artifact_id), notebook_id
            )
        except RPCError as e:
            if e.status_code != 400 or not notebook_id:
                raise
            logger.info("Get infographic %s returned 400, falling back to list", artifact_id)
            data = await self._find_row_in_list(artifact_id, notebook_id)

        image_url = resolver.find_media_url(data)
        if not image_url:
            raise ArtifactNotFoundError(
                f"No image URL found for infographic {artifact_id}", artifact_id=artifact_id
            )
        image_url = ensure_authuser(image_url, self.authuser)
        width, height = parse_image_dimensions(image_url)
        image = InfographicImage(image_url=image_url, width=width, height=height)

        if download:
            cookie_header = cookies or self._transport.config.cookies
            if not cookie_header.strip():
                raise InvalidInputError("Cookies are required to download infographic images")
            image.image_data = await download_image(image_url, cookie_header, client=self._media_client)
        return image

    async def _find_row_in_list(self, artifact_id: str, notebook_id: str) -> ListNode:
        data = await self._transport.call(
            methods.LIST_ARTIFACTS, methods.list_artifacts_args(notebook_id), notebook_id
        )
        row = resolver.find_row(data, artifact_id)
        if row is None:
            raise ArtifactNotFoundError(
                f"Infographic {artifact_id} not found in notebook {notebook_id}",
                artifact_id=artifact_id,
            )
        return row


def _require(value: str, name: str) -> None:
    if not value or not value.strip():
        raise InvalidInputError(f"{name} is required")
