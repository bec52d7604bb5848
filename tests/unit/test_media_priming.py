"""Unit tests for notebooklm_wire/media/priming.py (best-effort auth warm-up)."""

import hashlib
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from notebooklm_wire.media.priming import (
    authorization_value,
    extract_sapisid,
    prime_auth,
    priming_url,
    sapisid_hash,
)
from tests.helpers.settings import PRIMARY_COOKIES

TIMESTAMP = 1700000000


class TestSapisid:
    def test_extract(self):
        assert extract_sapisid(PRIMARY_COOKIES) == "sapisid-value"

    def test_extract_ignores_similar_names(self):
        assert extract_sapisid("__Secure-3PAPISID=x; APISID=y") is None

    def test_hash(self):
        expected = hashlib.sha1(
            f"{TIMESTAMP} sapisid-value https://notebooklm.google.com".encode()
        ).hexdigest()

        assert sapisid_hash("sapisid-value", TIMESTAMP) == expected

    def test_authorization_value_is_url_escaped(self):
        value = authorization_value("sapisid-value", TIMESTAMP)
        digest = sapisid_hash("sapisid-value", TIMESTAMP)

        assert "+" not in value
        assert value == f"SAPISIDHASH%2B{digest}%2BSAPISID1PHASH%2B{digest}%2BSAPISID3PHASH%2B{digest}"

    def test_priming_url(self):
        url = priming_url("sapisid-value", TIMESTAMP, "2")
        query = parse_qs(urlsplit(url).query)

        assert url.startswith("https://play.google.com/log?")
        assert query["authuser"] == ["2"]
        assert query["format"] == ["json"]
        assert query["hasfast"] == ["true"]


class TestPrimeAuth:
    @pytest.mark.asyncio
    async def test_sends_signed_request(self, mock_http):
        client, handler = mock_http(httpx.Response(200))

        assert await prime_auth(PRIMARY_COOKIES, client=client, time_func=lambda: TIMESTAMP)

        request = handler.requests[0]
        assert request.method == "POST"
        assert request.headers["cookie"] == PRIMARY_COOKIES
        assert request.headers["origin"] == "https://notebooklm.google.com"
        assert request.content == b"[]"
        assert sapisid_hash("sapisid-value", TIMESTAMP) in str(request.url)

    @pytest.mark.asyncio
    async def test_skipped_without_sapisid(self, mock_http):
        client, handler = mock_http()

        assert not await prime_auth("SID=only", client=client)
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self, mock_http):
        def _fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        client, _ = mock_http(_fail)

        assert not await prime_auth(PRIMARY_COOKIES, client=client)

    @pytest.mark.asyncio
    async def test_error_status_still_counts_as_sent(self, mock_http):
        client, _ = mock_http(httpx.Response(500))

        assert await prime_auth(PRIMARY_COOKIES, client=client)
