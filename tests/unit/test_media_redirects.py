"""Unit tests for notebooklm_wire/media/redirects.py (authenticated redirect follower)."""

import httpx
import pytest

from notebooklm_wire.exceptions import (
    AuthenticationError,
    InvalidInputError,
    MalformedRedirectError,
    NetworkError,
    TooManyRedirectsError,
    UnexpectedResponseError,
)
from notebooklm_wire.media.redirects import (
    AuthenticatedRedirectDownloader,
    base_headers,
    ensure_authuser,
    hop_headers,
    is_login_url,
    is_terminal_url,
    needs_cookies,
    normalize_redirect_url,
    resolve_media_url,
)
from tests.helpers.settings import PRIMARY_COOKIES, SECONDARY_COOKIES

THUMBNAIL_URL = "https://lh3.googleusercontent.com/notebooklm/video-token=m22"
REDIRECT_URL = "https://lh3.google.com/rd-notebooklm/video-token=m22?authuser=0"
SIGNED_URL = "https://rr3---sn-abc.googlevideo.com/videoplayback?expire=1&sig=XYZ"

MERGED_COOKIES = "NID=secondary-nid; SID=primary-sid; HSID=primary-hsid; SAPISID=sapisid-value"


def _redirect(location: str, *set_cookies: str, status: int = 302) -> httpx.Response:
    headers = [("location", location)] + [("set-cookie", value) for value in set_cookies]
    return httpx.Response(status, headers=headers)


class TestUrlRules:
    def test_terminal_url(self):
        assert is_terminal_url(SIGNED_URL)
        assert not is_terminal_url(THUMBNAIL_URL)

    def test_login_url(self):
        assert is_login_url("https://accounts.google.com/v3/signin/identifier")
        assert is_login_url("https://example.com/ServiceLogin?x=1")
        assert not is_login_url(REDIRECT_URL)

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://h.com/p", "https://h.com/p?authuser=0"),
            ("https://h.com/p?a=1", "https://h.com/p?a=1&authuser=0"),
            ("https://h.com/p?authuser=2", "https://h.com/p?authuser=2"),
        ],
    )
    def test_ensure_authuser(self, url, expected):
        assert ensure_authuser(url) == expected

    def test_ensure_authuser_custom_index(self):
        assert ensure_authuser("https://h.com/p", "3") == "https://h.com/p?authuser=3"


class TestNormalizeRedirectUrl:
    @pytest.mark.parametrize(
        ("location", "base", "expected"),
        [
            (
                "//lh3.google.com/rd-notebooklm/x",
                THUMBNAIL_URL,
                "https://lh3.google.com/rd-notebooklm/x",
            ),
            (
                "/rd-notebooklm/x?authuser=0",
                "https://lh3.google.com/other",
                "https://lh3.google.com/rd-notebooklm/x?authuser=0",
            ),
            (SIGNED_URL, REDIRECT_URL, SIGNED_URL),
            (
                "rd-notebooklm/x",
                THUMBNAIL_URL,
                "https://lh3.google.com/rd-notebooklm/x",
            ),
            ("next", "https://example.com/a/b", "https://example.com/a/next"),
        ],
    )
    def test_location_forms(self, location, base, expected):
        assert normalize_redirect_url(location, base) == expected

    def test_escaped_query_separator_is_repaired(self):
        location = "https://lh3.google.com/rd-notebooklm/abc%3Fsig=1&authuser=0"

        assert normalize_redirect_url(location, THUMBNAIL_URL) == (
            "https://lh3.google.com/rd-notebooklm/abc?sig=1&authuser=0"
        )

    def test_escaped_and_real_query_are_merged(self):
        location = "https://lh3.google.com/p%3Fa=1&b=2?b=3"

        assert normalize_redirect_url(location, THUMBNAIL_URL) == "https://lh3.google.com/p?a=1&b=3"

    def test_merged_queries_keep_escapes_byte_exact(self):
        location = "https://lh3.google.com/p%3Fsig=a%2Fb%3D&x=%20?authuser=0"

        assert normalize_redirect_url(location, THUMBNAIL_URL) == (
            "https://lh3.google.com/p?sig=a%2Fb%3D&x=%20&authuser=0"
        )

    def test_other_escapes_are_preserved(self):
        location = "https://r.googlevideo.com/videoplayback?sig=a%2Fb%3D"

        assert normalize_redirect_url(location, REDIRECT_URL) == location


class TestHeaderRules:
    def test_unsigned_thumbnail_first_hop_has_no_cookies(self):
        assert not needs_cookies(THUMBNAIL_URL, 0)

    def test_later_hops_carry_cookies(self):
        assert needs_cookies(THUMBNAIL_URL, 1)
        assert needs_cookies("https://example.com/x", 2)

    def test_redirect_path_always_carries_cookies(self):
        assert needs_cookies(REDIRECT_URL, 0)

    def test_other_first_hop_has_no_cookies(self):
        assert not needs_cookies("https://example.com/x", 0)

    def test_redirect_host_drops_storage_access(self):
        headers = hop_headers(REDIRECT_URL, base_headers(THUMBNAIL_URL))

        assert "sec-fetch-storage-access" not in headers
        assert headers["Priority"] == "i"
        assert headers["sec-fetch-mode"] == "no-cors"

    def test_thumbnail_host_has_storage_access(self):
        headers = hop_headers(THUMBNAIL_URL, base_headers(THUMBNAIL_URL))

        assert headers["sec-fetch-storage-access"] == "active"

    def test_cdn_hop(self):
        headers = hop_headers(SIGNED_URL, base_headers(THUMBNAIL_URL))

        assert headers["sec-fetch-storage-access"] == "active"
        assert headers["Range"] == "bytes=0-"

    def test_base_headers_are_browser_like(self):
        headers = base_headers(THUMBNAIL_URL)

        assert "Chrome" in headers["User-Agent"]
        assert headers["Referer"] == "https://notebooklm.google.com/"


class TestResolve:
    """Walking the redirect chain hop by hop."""

    @pytest.mark.asyncio
    async def test_three_hop_chain(self, mock_http):
        client, handler = mock_http(
            _redirect(REDIRECT_URL, "FRESH=from-hop-1; Path=/; Secure"),
            _redirect(SIGNED_URL),
        )
        downloader = AuthenticatedRedirectDownloader(
            THUMBNAIL_URL, PRIMARY_COOKIES, SECONDARY_COOKIES, client=client
        )

        url = await downloader.resolve()

        assert url == SIGNED_URL
        assert len(handler.requests) == 2
        first, second = handler.requests
        assert str(first.url) == f"{THUMBNAIL_URL}?authuser=0"
        assert "cookie" not in first.headers
        assert second.headers["cookie"] == f"{MERGED_COOKIES}; FRESH=from-hop-1"
        assert downloader.visited == [f"{THUMBNAIL_URL}?authuser=0", REDIRECT_URL]

    @pytest.mark.asyncio
    async def test_cookie_set_on_interim_hop_reaches_cdn(self, mock_http):
        media = b"\x00\x00\x00\x18ftypmp42"
        client, handler = mock_http(
            _redirect(REDIRECT_URL),
            _redirect(SIGNED_URL, "HOP2=from-rd-notebooklm; Path=/; Secure; HttpOnly"),
            httpx.Response(200, content=media),
        )
        downloader = AuthenticatedRedirectDownloader(
            THUMBNAIL_URL, PRIMARY_COOKIES, SECONDARY_COOKIES, client=client
        )

        assert await downloader.download() == media

        thumbnail, rd_hop, cdn = handler.requests
        assert "cookie" not in thumbnail.headers
        assert rd_hop.url.path.startswith("/rd-notebooklm/")
        assert "HOP2" not in rd_hop.headers["cookie"]
        assert str(cdn.url) == SIGNED_URL
        assert cdn.headers["cookie"] == f"{MERGED_COOKIES}; HOP2=from-rd-notebooklm"

    @pytest.mark.asyncio
    async def test_primary_cookies_win_collisions(self, mock_http):
        client, handler = mock_http(_redirect(SIGNED_URL))
        downloader = AuthenticatedRedirectDownloader(
            REDIRECT_URL, PRIMARY_COOKIES, SECONDARY_COOKIES, client=client
        )

        await downloader.resolve()

        assert handler.requests[0].headers["cookie"] == MERGED_COOKIES

    @pytest.mark.asyncio
    async def test_result_is_cached(self, mock_http):
        client, handler = mock_http(_redirect(SIGNED_URL))
        downloader = AuthenticatedRedirectDownloader(REDIRECT_URL, PRIMARY_COOKIES, client=client)

        assert await downloader.resolve() == await downloader.resolve()
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_terminal_start_needs_no_requests(self, mock_http):
        client, handler = mock_http()
        downloader = AuthenticatedRedirectDownloader(SIGNED_URL, PRIMARY_COOKIES, client=client)

        assert await downloader.resolve() == f"{SIGNED_URL}&authuser=0"
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_login_redirect_stops_chain(self, mock_http):
        client, handler = mock_http(
            _redirect("https://accounts.google.com/ServiceLogin?continue=x"),
            _redirect(SIGNED_URL),
        )
        downloader = AuthenticatedRedirectDownloader(THUMBNAIL_URL, PRIMARY_COOKIES, client=client)

        with pytest.raises(AuthenticationError) as exc_info:
            await downloader.resolve()

        assert "accounts.google.com" in exc_info.value.url
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_login_redirect_on_second_hop_stops_chain(self, mock_http):
        client, handler = mock_http(
            _redirect(REDIRECT_URL),
            _redirect("https://accounts.google.com/v3/signin/identifier?continue=x"),
            _redirect(SIGNED_URL),
        )
        downloader = AuthenticatedRedirectDownloader(THUMBNAIL_URL, PRIMARY_COOKIES, client=client)

        with pytest.raises(AuthenticationError):
            await downloader.resolve()

        assert len(handler.requests) == 2
        assert [str(r.url) for r in handler.requests] == [f"{THUMBNAIL_URL}?authuser=0", REDIRECT_URL]

    def test_explicit_zero_hops_is_rejected(self):
        with pytest.raises(InvalidInputError):
            AuthenticatedRedirectDownloader(REDIRECT_URL, PRIMARY_COOKIES, max_hops=0)

    @pytest.mark.asyncio
    async def test_too_many_redirects(self, mock_http):
        client, handler = mock_http(
            *(_redirect("/rd-notebooklm/again?authuser=0") for _ in range(3))
        )
        downloader = AuthenticatedRedirectDownloader(
            REDIRECT_URL, PRIMARY_COOKIES, client=client, max_hops=3
        )

        with pytest.raises(TooManyRedirectsError) as exc_info:
            await downloader.resolve()

        assert exc_info.value.hops == 3
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_redirect_without_location(self, mock_http):
        client, _ = mock_http(httpx.Response(302))
        downloader = AuthenticatedRedirectDownloader(REDIRECT_URL, PRIMARY_COOKIES, client=client)

        with pytest.raises(MalformedRedirectError):
            await downloader.resolve()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 206, 403, 500])
    async def test_status_without_location(self, mock_http, status):
        client, _ = mock_http(httpx.Response(status))
        downloader = AuthenticatedRedirectDownloader(REDIRECT_URL, PRIMARY_COOKIES, client=client)

        with pytest.raises(UnexpectedResponseError) as exc_info:
            await downloader.resolve()

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_hop_timeout(self, mock_http):
        def _timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        client, _ = mock_http(_timeout)
        downloader = AuthenticatedRedirectDownloader(REDIRECT_URL, PRIMARY_COOKIES, client=client)

        with pytest.raises(NetworkError) as exc_info:
            await downloader.resolve()

        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_http):
        def _refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client, _ = mock_http(_refused)
        downloader = AuthenticatedRedirectDownloader(REDIRECT_URL, PRIMARY_COOKIES, client=client)

        with pytest.raises(NetworkError):
            await downloader.resolve()

    @pytest.mark.asyncio
    async def test_resolve_media_url_helper(self, mock_http):
        client, _ = mock_http(_redirect(SIGNED_URL))

        assert await resolve_media_url(REDIRECT_URL, PRIMARY_COOKIES, client=client) == SIGNED_URL


class TestDownload:
    @pytest.mark.asyncio
    async def test_download_fetches_signed_url_with_cookies(self, mock_http):
        client, handler = mock_http(
            _redirect(SIGNED_URL),
            httpx.Response(206, content=b"media-bytes"),
        )
        downloader = AuthenticatedRedirectDownloader(REDIRECT_URL, PRIMARY_COOKIES, client=client)

        assert await downloader.download() == b"media-bytes"
        assert str(handler.requests[1].url) == SIGNED_URL
        assert handler.requests[1].headers["cookie"] == PRIMARY_COOKIES

    @pytest.mark.asyncio
    async def test_download_to_file(self, mock_http, tmp_path):
        client, _ = mock_http(_redirect(SIGNED_URL), httpx.Response(200, content=b"abc"))
        target = tmp_path / "out" / "video.mp4"

        async with AuthenticatedRedirectDownloader(
            REDIRECT_URL, PRIMARY_COOKIES, client=client
        ) as downloader:
            path = await downloader.download_to(target)

        assert path == target
        assert target.read_bytes() == b"abc"

    @pytest.mark.asyncio
    async def test_failed_media_request(self, mock_http):
        client, _ = mock_http(_redirect(SIGNED_URL), httpx.Response(403))
        downloader = AuthenticatedRedirectDownloader(REDIRECT_URL, PRIMARY_COOKIES, client=client)

        with pytest.raises(UnexpectedResponseError):
            await downloader.download()
