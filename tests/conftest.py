"""Shared test fixtures for notebooklm-wire.

Every test runs against explicit test settings: ``get_settings()`` is
patched so no NOTEBOOKLM_* environment variable or .env file leaks in.
"""

from collections.abc import Callable

import httpx
import pytest

from notebooklm_wire import settings as settings_module
from notebooklm_wire.settings import Settings
from tests.helpers.settings import make_test_settings

# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return make_test_settings()


@pytest.fixture(autouse=True)
def mock_settings(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Patch get_settings() everywhere it was imported by name."""
    getter = lambda: test_settings  # noqa: E731
    monkeypatch.setattr(settings_module, "get_settings", getter)
    for module in (
        "notebooklm_wire.logging_config",
        "notebooklm_wire.media.images",
        "notebooklm_wire.media.priming",
        "notebooklm_wire.media.redirects",
        "notebooklm_wire.rpc.transport",
        "notebooklm_wire.client",
        "notebooklm_wire.cli.main",
    ):
        monkeypatch.setattr(f"{module}.get_settings", getter)
    return test_settings


# =============================================================================
# HTTP
# =============================================================================


class RecordingHandler:
    """MockTransport handler that records requests and replays canned responses.

    ``responses`` is consumed in order; a callable entry is invoked with the
    request instead.
    """

    def __init__(self, responses: list[httpx.Response | Callable[[httpx.Request], httpx.Response]]):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request to {request.url}")
        response = self.responses.pop(0)
        if callable(response):
            return response(request)
        return response


@pytest.fixture
def mock_http() -> Callable[..., tuple[httpx.AsyncClient, RecordingHandler]]:
    """Factory returning an AsyncClient wired to a RecordingHandler."""

    def _make(*responses) -> tuple[httpx.AsyncClient, RecordingHandler]:
        handler = RecordingHandler(list(responses))
        return httpx.AsyncClient(transport=httpx.MockTransport(handler)), handler

    return _make
