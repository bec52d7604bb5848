"""Best-effort auth priming before image downloads.

Infographic images are served more reliably after the browser has sent a
SAPISIDHASH-signed request to the logging endpoint. The warm-up is purely
opportunistic: every failure is swallowed.
"""

import hashlib
import logging
import time
from collections.abc import Callable

import httpx

from notebooklm_wire.settings import get_settings

logger = logging.getLogger(__name__)

PRIMING_ORIGIN = "https://notebooklm.google.com"
PRIMING_ENDPOINT = "https://play.google.com/log"

PRIMING_HEADERS = {
    "Accept": "*/*",
    "Accept-Language": "en-IN,en-GB;q=0.9,en;q=0.8,en-US;q=0.7",
    "Content-Type": "text/plain;charset=UTF-8",
    "Origin": PRIMING_ORIGIN,
    "Referer": f"{PRIMING_ORIGIN}/",
}


def extract_sapisid(cookies: str) -> str | None:
    """Value of the ``SAPISID`` cookie in a Cookie header string."""
    for part in cookies.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name == "SAPISID":
            return value
    return None


def sapisid_hash(sapisid: str, timestamp: int, origin: str = PRIMING_ORIGIN) -> str:
    """SHA-1 hex digest of ``"{timestamp} {sapisid} {origin}"``."""
    return hashlib.sha1(f"{timestamp} {sapisid} {origin}".encode()).hexdigest()


def authorization_value(sapisid: str, timestamp: int) -> str:
    """URL-ready ``auth`` parameter for the logging endpoint."""
    digest = sapisid_hash(sapisid, timestamp)
    value = f"SAPISIDHASH+{digest}+SAPISID1PHASH+{digest}+SAPISID3PHASH+{digest}"
    return value.replace("+", "%2B")


def priming_url(sapisid: str, timestamp: int, authuser: str = "0") -> str:
    auth = authorization_value(sapisid, timestamp)
    return f"{PRIMING_ENDPOINT}?hasfast=true&auth={auth}&authuser={authuser}&format=json"


async def prime_auth(
    cookies: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
    time_func: Callable[[], float] | None = None,
) -> bool:
    """Send the warm-up request. Never raises.

    Returns:
        True if the request completed, False if it was skipped or failed
    """
    sapisid = extract_sapisid(cookies)
    if not sapisid:
        logger.debug("No SAPISID cookie, skipping auth priming")
        return False

    settings = get_settings()
    timestamp = int((time_func or time.time)())
    request = httpx.Request(
        "POST",
        priming_url(sapisid, timestamp, settings.authuser),
        headers={**PRIMING_HEADERS, "Cookie": cookies},
        content=b"[]",
        extensions={"timeout": httpx.Timeout(timeout or settings.priming_timeout).as_dict()},
    )

    owned = client is None
    http_client = client or httpx.AsyncClient()
    try:
        response = await http_client.send(request)
        logger.debug("Auth priming returned HTTP %d", response.status_code)
        return True
    except Exception as e:
        logger.debug("Auth priming failed: %s", e, exc_info=True)
        return False
    finally:
        if owned:
            await http_client.aclose()
