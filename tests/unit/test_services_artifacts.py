"""Unit tests for notebooklm_wire/services/artifacts.py."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from notebooklm_wire.entities.models import EntityKind, EntityState
from notebooklm_wire.exceptions import ArtifactNotFoundError, InvalidInputError, RPCError
from notebooklm_wire.rpc import methods
from notebooklm_wire.services.artifacts import ArtifactService
from tests.helpers.settings import PRIMARY_COOKIES, SECONDARY_COOKIES, make_rpc_config
from tests.helpers.wire import artifact_row, media_row

VIDEO_THUMBNAIL = "https://lh3.googleusercontent.com/notebooklm/video-token=m22"
SIGNED_URL = "https://rr1---sn-x.googlevideo.com/videoplayback?sig=abc"
IMAGE_URL = "https://lh3.googleusercontent.com/notebooklm/info-token=w1600-h900"


def _listing() -> list:
    return [
        [
            artifact_row("report-aaaaaaaaaa", "Briefing", 2, 3),
            artifact_row("audio-bbbbbbbbbb", "Deep dive podcast", 1, 1),
            media_row("video-cccccccccc", 3, VIDEO_THUMBNAIL),
            media_row("infographic-dddd", 7, IMAGE_URL),
        ]
    ]


@pytest.fixture
def transport() -> MagicMock:
    transport = MagicMock()
    transport.config = make_rpc_config()
    transport.call = AsyncMock()
    return transport


@pytest.fixture
def service(transport) -> ArtifactService:
    return ArtifactService(transport, secondary_cookies=SECONDARY_COOKIES)


class TestList:
    @pytest.mark.asyncio
    async def test_lists_all(self, service, transport):
        transport.call.return_value = _listing()

        artifacts = await service.list("nb-1")

        assert [a.kind for a in artifacts] == [
            EntityKind.REPORT,
            EntityKind.AUDIO,
            EntityKind.VIDEO,
            EntityKind.INFOGRAPHIC,
        ]
        transport.call.assert_awaited_once_with(methods.LIST_ARTIFACTS, [[2], "nb-1"], "nb-1")

    @pytest.mark.asyncio
    async def test_filters(self, service, transport):
        transport.call.return_value = _listing()

        creating = await service.list("nb-1", state=EntityState.CREATING)
        videos = await service.list("nb-1", kind=EntityKind.VIDEO)

        assert [a.id for a in creating] == ["audio-bbbbbbbbbb"]
        assert [a.id for a in videos] == ["video-cccccccccc"]

    @pytest.mark.asyncio
    async def test_requires_notebook(self, service, transport):
        with pytest.raises(InvalidInputError):
            await service.list(" ")

        transport.call.assert_not_awaited()


class TestGet:
    @pytest.mark.asyncio
    async def test_get(self, service, transport):
        transport.call.return_value = [[artifact_row("report-aaaaaaaaaa", "Briefing", 2, 3)]]

        artifact = await service.get("report-aaaaaaaaaa")

        assert artifact.kind is EntityKind.REPORT
        assert artifact.state is EntityState.READY

    @pytest.mark.asyncio
    async def test_falls_back_to_listing_on_400(self, service, transport):
        transport.call.side_effect = [RPCError("bad", status_code=400), _listing()]

        artifact = await service.get("video-cccccccccc", notebook_id="nb-1")

        assert artifact.kind is EntityKind.VIDEO
        assert transport.call.await_args_list[1].args[0] == methods.LIST_ARTIFACTS

    @pytest.mark.asyncio
    async def test_400_without_notebook_is_raised(self, service, transport):
        transport.call.side_effect = RPCError("bad", status_code=400)

        with pytest.raises(RPCError):
            await service.get("video-cccccccccc")

    @pytest.mark.asyncio
    async def test_other_errors_are_raised(self, service, transport):
        transport.call.side_effect = RPCError("gone", code=143)

        with pytest.raises(RPCError):
            await service.get("video-cccccccccc", notebook_id="nb-1")

        assert transport.call.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_in_listing(self, service, transport):
        transport.call.side_effect = [RPCError("bad", status_code=400), _listing()]

        with pytest.raises(ArtifactNotFoundError) as exc_info:
            await service.get("nope-0000000000", notebook_id="nb-1")

        assert exc_info.value.artifact_id == "nope-0000000000"

    @pytest.mark.asyncio
    async def test_empty_response(self, service, transport):
        transport.call.return_value = []

        with pytest.raises(ArtifactNotFoundError):
            await service.get("report-aaaaaaaaaa")


class TestManage:
    @pytest.mark.asyncio
    async def test_rename(self, service, transport):
        transport.call.return_value = [[artifact_row("report-aaaaaaaaaa", "New title", 2, 3)]]

        artifact = await service.rename("report-aaaaaaaaaa", "New title")

        assert artifact.title == "New title"
        transport.call.assert_awaited_once_with(
            methods.RENAME_ARTIFACT, [["report-aaaaaaaaaa", "New title"], [["title"]]]
        )

    @pytest.mark.asyncio
    async def test_rename_requires_title(self, service):
        with pytest.raises(InvalidInputError):
            await service.rename("report-aaaaaaaaaa", "")

    @pytest.mark.asyncio
    async def test_delete(self, service, transport):
        transport.call.return_value = []

        await service.delete("report-aaaaaaaaaa")

        transport.call.assert_awaited_once_with(methods.DELETE_ARTIFACT, ["report-aaaaaaaaaa"])


class TestVideo:
    @pytest.mark.asyncio
    async def test_get_video_url(self, transport, mock_http):
        client, handler = mock_http(
            httpx.Response(302, headers={"location": SIGNED_URL}),
        )
        transport.call.return_value = _listing()
        service = ArtifactService(transport, secondary_cookies=SECONDARY_COOKIES, media_client=client)

        url = await service.get_video_url("nb-1")

        assert url == SIGNED_URL
        assert str(handler.requests[0].url) == f"{VIDEO_THUMBNAIL}?authuser=0"

    @pytest.mark.asyncio
    async def test_download_video_to_path(self, transport, mock_http, tmp_path):
        client, handler = mock_http(
            httpx.Response(302, headers={"location": SIGNED_URL}),
            httpx.Response(200, content=b"mp4-bytes"),
        )
        transport.call.return_value = _listing()
        service = ArtifactService(transport, media_client=client)

        path = await service.download_video("nb-1", tmp_path / "video.mp4")

        assert path.read_bytes() == b"mp4-bytes"
        assert handler.requests[1].headers["cookie"] == PRIMARY_COOKIES

    @pytest.mark.asyncio
    async def test_download_video_bytes(self, transport, mock_http):
        client, _ = mock_http(
            httpx.Response(302, headers={"location": SIGNED_URL}),
            httpx.Response(200, content=b"mp4-bytes"),
        )
        transport.call.return_value = _listing()
        service = ArtifactService(transport, media_client=client)

        assert await service.download_video("nb-1") == b"mp4-bytes"

    @pytest.mark.asyncio
    async def test_no_video(self, service, transport):
        transport.call.return_value = [[artifact_row("report-aaaaaaaaaa", "Briefing", 2, 3)]]

        with pytest.raises(ArtifactNotFoundError, match="No video URL"):
            await service.get_video_url("nb-1")

    @pytest.mark.asyncio
    async def test_cookies_required(self, transport):
        transport.config = make_rpc_config(cookies="")
        transport.call.return_value = _listing()
        service = ArtifactService(transport)

        with pytest.raises(InvalidInputError):
            await service.get_video_url("nb-1")


class TestInfographic:
    @pytest.mark.asyncio
    async def test_url_and_dimensions(self, service, transport):
        transport.call.return_value = [[media_row("infographic-dddd", 7, IMAGE_URL)]]

        image = await service.fetch_infographic("infographic-dddd")

        assert image.image_url == f"{IMAGE_URL}?authuser=0"
        assert (image.width, image.height) == (1600, 900)
        assert image.image_data is None

    @pytest.mark.asyncio
    async def test_falls_back_to_listing_row(self, service, transport):
        transport.call.side_effect = [RPCError("bad", status_code=400), _listing()]

        image = await service.fetch_infographic("infographic-dddd", notebook_id="nb-1")

        assert image.image_url.startswith(IMAGE_URL)

    @pytest.mark.asyncio
    async def test_missing_from_listing(self, service, transport):
        transport.call.side_effect = [RPCError("bad", status_code=400), _listing()]

        with pytest.raises(ArtifactNotFoundError):
            await service.fetch_infographic("nope-0000000000", notebook_id="nb-1")

    @pytest.mark.asyncio
    async def test_no_image_url(self, service, transport):
        transport.call.return_value = [[artifact_row("infographic-dddd", "Pending", 7, 1)]]

        with pytest.raises(ArtifactNotFoundError, match="No image URL"):
            await service.fetch_infographic("infographic-dddd")

    @pytest.mark.asyncio
    async def test_download(self, transport, mock_http):
        client, handler = mock_http(httpx.Response(204), httpx.Response(200, content=b"png"))
        transport.call.return_value = [[media_row("infographic-dddd", 7, IMAGE_URL)]]
        service = ArtifactService(transport, media_client=client)

        image = await service.fetch_infographic("infographic-dddd", download=True)

        assert image.image_data == b"png"
        assert handler.requests[1].headers["cookie"] == PRIMARY_COOKIES
