"""Authenticated media retrieval: redirect following, cookies, images."""

from notebooklm_wire.media.cookies import CookieState, merge_cookie_headers
from notebooklm_wire.media.images import InfographicImage, download_image, parse_image_dimensions
from notebooklm_wire.media.priming import prime_auth
from notebooklm_wire.media.redirects import AuthenticatedRedirectDownloader, resolve_media_url

__all__ = [
    "AuthenticatedRedirectDownloader",
    "CookieState",
    "InfographicImage",
    "download_image",
    "merge_cookie_headers",
    "parse_image_dimensions",
    "prime_auth",
    "resolve_media_url",
]
