"""Authenticated redirect follower for NotebookLM media.

Video and audio artifacts expose an unsigned thumbnail-host URL. Reaching
the playable media means walking a redirect chain by hand:

    lh3.googleusercontent.com/notebooklm/...      (no cookies)
      -> lh3.google.com/rd-notebooklm/...         (cookies, sets more)
      -> ...
      -> *.googlevideo.com/videoplayback?...      (signed, IP-bound)

Each hop needs the cookies accumulated so far and a browser-like header
set, so httpx's own redirect handling and cookie jar are bypassed. Hops are
strictly sequential and every download owns its own CookieState.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from pathlib import Path
from urllib.parse import parse_qsl, urljoin, urlsplit, urlunsplit

import httpx

from notebooklm_wire.exceptions import (
    AuthenticationError,
    InvalidInputError,
    MalformedRedirectError,
    NetworkError,
    TooManyRedirectsError,
    UnexpectedResponseError,
)
from notebooklm_wire.media.cookies import CookieState
from notebooklm_wire.settings import get_settings

logger = logging.getLogger(__name__)

TERMINAL_MARKER = "googlevideo.com/videoplayback"
LOGIN_MARKERS = ("accounts.google.com", "ServiceLogin", "InteractiveLogin")

THUMBNAIL_HOST = "lh3.googleusercontent.com"
REDIRECT_HOST = "lh3.google.com"
THUMBNAIL_PATH = "/notebooklm/"
REDIRECT_PATH = "/rd-notebooklm/"

REDIRECT_STATUSES = frozenset({301, 302, 307, 308})
SUCCESS_STATUSES = frozenset({200, 206})

# Escaped query separator some hops deliver in place of '?'
ESCAPED_QUERY_SEPARATOR = "%3F"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36 Edg/143.0.0.0"
)

BROWSER_HEADERS = {
    "Accept": "*/*",
    "Accept-Encoding": "identity;q=1, *;q=0",
    "Accept-Language": "en-IN,en-GB;q=0.9,en;q=0.8,en-US;q=0.7",
    "Range": "bytes=0-",
    "Referer": "https://notebooklm.google.com/",
    "User-Agent": USER_AGENT,
    "sec-ch-ua": '"Microsoft Edge";v="143", "Chromium";v="143", "Not A(Brand";v="24"',
    "sec-fetch-dest": "video",
    "sec-fetch-site": "cross-site",
}


# =============================================================================
# URL rules
# =============================================================================


def is_terminal_url(url: str) -> bool:
    """Whether ``url`` is the signed CDN media URL."""
    return TERMINAL_MARKER in url


def is_login_url(url: str) -> bool:
    return any(marker in url for marker in LOGIN_MARKERS)


def ensure_authuser(url: str, authuser: str = "0") -> str:
    """Append ``authuser`` to the query unless already present."""
    parts = urlsplit(url)
    if any(key == "authuser" for key, _ in parse_qsl(parts.query, keep_blank_values=True)):
        return url
    query = f"{parts.query}&authuser={authuser}" if parts.query else f"authuser={authuser}"
    return urlunsplit(parts._replace(query=query))


def normalize_redirect_url(location: str, base_url: str) -> str:
    """Resolve a ``Location`` value against the URL that returned it.

    Handles protocol-relative, absolute-path, absolute and bare relative
    forms, and repairs a ``%3F`` delivered instead of the query separator.
    Percent-escapes elsewhere are left alone; signed URLs must stay byte-exact.
    """
    location = location.strip()
    base = urlsplit(base_url)

    if location.startswith("//"):
        url = f"{base.scheme}:{location}"
    elif location.startswith("/"):
        url = f"{base.scheme}://{base.netloc}{location}"
    elif location.startswith(("http://", "https://")):
        url = location
    elif "/" in location and "://" not in location and _is_google_host(base.hostname):
        url = f"{base.scheme}://{REDIRECT_HOST}/{location}"
    else:
        url = urljoin(base_url, location)

    return _repair_query_separator(url)


def _is_google_host(host: str | None) -> bool:
    return bool(host) and ("google.com" in host or "googleusercontent.com" in host)


def _repair_query_separator(url: str) -> str:
    parts = urlsplit(url)
    marker_at = parts.path.upper().find(ESCAPED_QUERY_SEPARATOR)
    if marker_at < 0:
        return url

    path = parts.path[:marker_at]
    embedded = parts.path[marker_at + len(ESCAPED_QUERY_SEPARATOR) :]
    if not parts.query:
        return urlunsplit(parts._replace(path=path, query=embedded))

    # Both an escaped and a real query: join them raw, the real query wins on repeated keys
    real_keys = {_query_key(param) for param in parts.query.split("&") if param}
    kept = [param for param in embedded.split("&") if param and _query_key(param) not in real_keys]
    return urlunsplit(parts._replace(path=path, query="&".join([*kept, parts.query])))


def _query_key(param: str) -> str:
    return param.split("=", 1)[0]


def needs_cookies(url: str, hop: int) -> bool:
    """Whether hop number ``hop`` (0-based) to ``url`` carries the Cookie header.

    The first request to the unsigned thumbnail host goes without cookies;
    redirect-host paths and every later hop send them.
    """
    parts = urlsplit(url)
    path = parts.path
    unsigned_thumbnail = (
        hop == 0
        and parts.hostname == THUMBNAIL_HOST
        and THUMBNAIL_PATH in path
        and REDIRECT_PATH not in path
    )
    if unsigned_thumbnail:
        return False
    return REDIRECT_PATH in path or hop > 0


def base_headers(initial_url: str) -> dict[str, str]:
    """Browser header set for a download starting at ``initial_url``."""
    headers = dict(BROWSER_HEADERS)
    if "notebooklm" in initial_url:
        headers["sec-fetch-mode"] = "no-cors"
        headers["Priority"] = "i"
        if f"{REDIRECT_HOST}/rd-notebooklm" not in initial_url:
            headers["sec-fetch-storage-access"] = "active"
    elif "googlevideo.com" in initial_url:
        headers["sec-fetch-mode"] = "no-cors"
        headers["sec-fetch-storage-access"] = "active"
    return headers


def hop_headers(url: str, base: dict[str, str]) -> dict[str, str]:
    """Apply the per-hop header rules for ``url`` on top of ``base``."""
    headers = dict(base)
    parts = urlsplit(url)
    host = parts.hostname or ""
    if REDIRECT_PATH in parts.path or THUMBNAIL_PATH in parts.path:
        headers["sec-fetch-mode"] = "no-cors"
        headers["Priority"] = "i"
        if host == REDIRECT_HOST and REDIRECT_PATH in parts.path:
            headers.pop("sec-fetch-storage-access", None)
        else:
            headers["sec-fetch-storage-access"] = "active"
    elif "googlevideo.com" in host:
        headers["sec-fetch-mode"] = "no-cors"
        headers["sec-fetch-storage-access"] = "active"
    headers.setdefault("Range", "bytes=0-")
    return headers


# =============================================================================
# Downloader
# =============================================================================


class AuthenticatedRedirectDownloader:
    """Follow a media redirect chain with accumulated cookies.

    Secondary-domain (google.com) cookies are merged first and primary
    (notebooklm.google.com) cookies last, so primary session cookies win on
    name collisions.

    Usage:
        async with AuthenticatedRedirectDownloader(url, cookies) as downloader:
            signed_url = await downloader.resolve()
            data = await downloader.download()
    """

    def __init__(
        self,
        url: str,
        primary_cookies: str,
        secondary_cookies: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        max_hops: int | None = None,
        timeout: float | None = None,
        authuser: str | None = None,
    ):
        settings = get_settings()
        self.authuser = authuser or settings.authuser
        self.initial_url = ensure_authuser(url, self.authuser)
        self.cookies = CookieState(secondary_cookies, primary_cookies)
        self.max_hops = settings.max_redirect_hops if max_hops is None else max_hops
        if self.max_hops < 1:
            raise InvalidInputError(f"max_hops must be at least 1, got {self.max_hops}")
        self.timeout = settings.media_timeout if timeout is None else timeout
        self.visited: list[str] = []
        self._base_headers = base_headers(self.initial_url)
        self._final_url: str | None = None
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> AuthenticatedRedirectDownloader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this downloader created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=False)
        return self._client

    async def resolve(self) -> str:
        """Walk the redirect chain and return the signed media URL.

        Raises:
            AuthenticationError: A hop redirected to a login page
            MalformedRedirectError: Redirect status without a Location header
            UnexpectedResponseError: A hop answered without leading anywhere
            TooManyRedirectsError: More than ``max_hops`` requests were needed
            NetworkError: A hop timed out or the connection failed
        """
        if self._final_url is not None:
            return self._final_url

        current = self.initial_url
        for hop in range(self.max_hops):
            if is_terminal_url(current):
                return self._finish(current, hop)

            headers = hop_headers(current, self._base_headers)
            if needs_cookies(current, hop) and self.cookies:
                headers["Cookie"] = self.cookies.header()

            response = await self._send(current, headers)
            try:
                self.cookies.merge_set_cookie(response.headers.get_list("set-cookie"))
                location = response.headers.get("location")
                status = response.status_code
            finally:
                await response.aclose()

            logger.debug("Media hop %d: %s -> HTTP %d", hop + 1, _redact(current), status)

            if location:
                next_url = normalize_redirect_url(location, current)
                if is_terminal_url(next_url):
                    return self._finish(next_url, hop + 1)
                if is_login_url(next_url):
                    raise AuthenticationError(
                        "Media redirect landed on a login page; cookies expired or invalid",
                        url=next_url,
                    )
                current = next_url
                continue

            if status in REDIRECT_STATUSES:
                raise MalformedRedirectError(
                    f"Got redirect status {status} without a Location header",
                    url=current,
                    hops=hop + 1,
                )
            if status in SUCCESS_STATUSES:
                raise UnexpectedResponseError(
                    f"Got {status} without a Location header before reaching the media CDN",
                    status_code=status,
                    url=current,
                    hops=hop + 1,
                )
            raise UnexpectedResponseError(
                f"Unexpected status {status} while following media redirects",
                status_code=status,
                url=current,
                hops=hop + 1,
            )

        raise TooManyRedirectsError(
            f"Too many redirects (max {self.max_hops})",
            url=current,
            hops=self.max_hops,
        )

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Resolve the chain, then stream the media body."""
        final_url = await self.resolve()
        headers = hop_headers(final_url, self._base_headers)
        if self.cookies:
            headers["Cookie"] = self.cookies.header()

        response = await self._send(final_url, headers)
        try:
            if response.status_code not in SUCCESS_STATUSES:
                raise UnexpectedResponseError(
                    f"Media download failed: HTTP {response.status_code}",
                    status_code=response.status_code,
                    url=final_url,
                )
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as exc:
            raise NetworkError("Media download timed out", retryable=True) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Media download interrupted: {exc}", retryable=True) from exc
        finally:
            await response.aclose()

    async def download(self) -> bytes:
        """Resolve the chain and return the full media body."""
        chunks = [chunk async for chunk in self.iter_bytes()]
        return b"".join(chunks)

    async def download_to(self, path: str | Path) -> Path:
        """Stream the media body into ``path``."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as fh:
            async for chunk in self.iter_bytes():
                fh.write(chunk)
        return target

    async def _send(self, url: str, headers: dict[str, str]) -> httpx.Response:
        # Built directly so the client's cookie jar and default headers stay out
        request = httpx.Request(
            "GET",
            url,
            headers=headers,
            extensions={"timeout": httpx.Timeout(self.timeout).as_dict()},
        )
        self.visited.append(url)
        client = self._get_http_client()
        try:
            return await client.send(request, stream=True, follow_redirects=False)
        except httpx.TimeoutException as exc:
            raise NetworkError(
                f"Media hop timed out after {self.timeout}s: {_redact(url)}", retryable=True
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Media hop failed: {exc}", retryable=True) from exc

    def _finish(self, url: str, hops: int) -> str:
        logger.info("Resolved media URL after %d hop(s)", hops)
        self._final_url = url
        return url


def _redact(url: str) -> str:
    """Drop the query string (signatures) for logging."""
    parts = urlsplit(url)
    return urlunsplit(parts._replace(query="", fragment=""))


async def resolve_media_url(
    url: str,
    primary_cookies: str,
    secondary_cookies: str | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> str:
    """One-shot helper: resolve ``url`` to its signed media URL."""
    async with AuthenticatedRedirectDownloader(
        url, primary_cookies, secondary_cookies, client=client
    ) as downloader:
        return await downloader.resolve()
