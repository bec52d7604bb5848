"""Infographic image retrieval."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import httpx

from notebooklm_wire.exceptions import (
    AuthenticationError,
    NetworkError,
    TooManyRedirectsError,
    UnexpectedResponseError,
)
from notebooklm_wire.media.priming import prime_auth
from notebooklm_wire.media.redirects import USER_AGENT, is_login_url, normalize_redirect_url
from notebooklm_wire.settings import get_settings

logger = logging.getLogger(__name__)

WIDTH_HINT = re.compile(r"[=-]w(\d+)")
HEIGHT_HINT = re.compile(r"[=-]h(\d+)")

IMAGE_HEADERS = {
    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Accept-Language": "en-IN,en-GB;q=0.9,en;q=0.8,en-US;q=0.7",
    "Referer": "https://notebooklm.google.com/",
    "User-Agent": USER_AGENT,
    "sec-fetch-dest": "image",
    "sec-fetch-mode": "no-cors",
    "sec-fetch-site": "cross-site",
}


@dataclass
class InfographicImage:
    """Infographic image URL with optional size hints and bytes."""

    image_url: str
    mime_type: str = "image/png"
    width: int | None = None
    height: int | None = None
    image_data: bytes | None = None


def parse_image_dimensions(url: str) -> tuple[int | None, int | None]:
    """Width and height from ``=w1200-h800`` style sizing hints."""
    width = WIDTH_HINT.search(url)
    height = HEIGHT_HINT.search(url)
    return (
        int(width.group(1)) if width else None,
        int(height.group(1)) if height else None,
    )


async def download_image(
    url: str,
    cookies: str,
    *,
    client: httpx.AsyncClient | None = None,
    prime: bool = True,
) -> bytes:
    """Download an image, priming auth first and following redirects.

    Raises:
        AuthenticationError: A redirect led to a login page
        UnexpectedResponseError: Non-2xx response
        NetworkError: Timeout or connection failure
    """
    settings = get_settings()
    owned = client is None
    http_client = client or httpx.AsyncClient()
    try:
        if prime and cookies.strip():
            await prime_auth(cookies, client=http_client)

        headers = dict(IMAGE_HEADERS)
        if cookies.strip():
            headers["Cookie"] = cookies
            headers["sec-fetch-storage-access"] = "active"

        current = url
        for _ in range(settings.max_redirect_hops):
            request = httpx.Request(
                "GET",
                current,
                headers=headers,
                extensions={"timeout": httpx.Timeout(settings.media_timeout).as_dict()},
            )
            try:
                response = await http_client.send(request, follow_redirects=False)
            except httpx.TimeoutException as exc:
                raise NetworkError("Image download timed out", retryable=True) from exc
            except httpx.TransportError as exc:
                raise NetworkError(f"Image download failed: {exc}", retryable=True) from exc

            location = response.headers.get("location")
            if response.is_redirect and location:
                current = normalize_redirect_url(location, current)
                if is_login_url(current):
                    raise AuthenticationError("Image redirect landed on a login page", url=current)
                continue
            if not response.is_success:
                raise UnexpectedResponseError(
                    f"Failed to download image: HTTP {response.status_code}",
                    status_code=response.status_code,
                    url=current,
                )
            logger.debug("Downloaded image (%d bytes)", len(response.content))
            return response.content

        raise TooManyRedirectsError(
            f"Too many redirects (max {settings.max_redirect_hops})",
            url=current,
            hops=settings.max_redirect_hops,
        )
    finally:
        if owned:
            await http_client.aclose()
