"""Ordered cookie accumulation for multi-hop media downloads."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class CookieState:
    """Ordered ``name -> value`` map with last-write-wins per name.

    Iteration order is first-insertion order; overwriting a cookie keeps its
    original position. Each downloader owns one instance; instances are
    never shared between concurrent downloads.
    """

    def __init__(self, *cookie_headers: str | None):
        self._cookies: dict[str, str] = {}
        for header in cookie_headers:
            if header:
                self.merge_header(header)

    def merge_header(self, header: str) -> None:
        """Merge a ``Cookie`` header value (``a=1; b=2``)."""
        for part in header.split(";"):
            self._set_pair(part)

    def merge_set_cookie(self, values: Iterable[str]) -> None:
        """Merge ``Set-Cookie`` header values; only the assignment before the first ``;`` counts."""
        for value in values:
            self._set_pair(value.split(";", 1)[0])

    def get(self, name: str) -> str | None:
        return self._cookies.get(name)

    def header(self) -> str:
        """Render as a ``Cookie`` header value."""
        return "; ".join(f"{name}={value}" for name, value in self._cookies.items())

    def _set_pair(self, pair: str) -> None:
        pair = pair.strip()
        name, sep, value = pair.partition("=")
        name = name.strip()
        if name and sep:
            self._cookies[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

    def __iter__(self) -> Iterator[str]:
        return iter(self._cookies)

    def __len__(self) -> int:
        return len(self._cookies)

    def __bool__(self) -> bool:
        return bool(self._cookies)

    def __repr__(self) -> str:
        return f"CookieState(names={list(self._cookies)})"


def merge_cookie_headers(*headers: str | None) -> str:
    """Merge cookie header strings; later headers win on name collisions."""
    return CookieState(*headers).header()
