"""Unit tests for notebooklm_wire/media/cookies.py."""

from notebooklm_wire.media.cookies import CookieState, merge_cookie_headers


class TestCookieState:
    def test_parses_header(self):
        state = CookieState("a=1; b=2")

        assert state.get("a") == "1"
        assert state.header() == "a=1; b=2"

    def test_overwrite_keeps_first_position(self):
        state = CookieState("a=1; b=2", "a=9")

        assert state.header() == "a=9; b=2"

    def test_ignores_fragments_without_assignment(self):
        state = CookieState("a=1; junk; ; =x")

        assert list(state) == ["a"]

    def test_values_may_contain_equals(self):
        assert CookieState("token=abc==").get("token") == "abc=="

    def test_set_cookie_attributes_are_dropped(self):
        state = CookieState()
        state.merge_set_cookie(["NID=42; Path=/; Secure; HttpOnly", "OSID=7; Domain=.google.com"])

        assert state.header() == "NID=42; OSID=7"

    def test_empty_headers(self):
        state = CookieState(None, "")

        assert not state
        assert len(state) == 0
        assert state.header() == ""


class TestMergeCookieHeaders:
    def test_later_headers_win(self):
        merged = merge_cookie_headers("NID=n; SID=secondary", "SID=primary; HSID=h")

        assert merged == "NID=n; SID=primary; HSID=h"
