"""
Unit tests for HTTP request parsing.
"""

import pytest

from httpprobe.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
    parse_cookie_header,
)


@pytest.fixture
def range_request() -> bytes:
    return (
        b"GET /range/30?chunk_size=5&duration=1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Range: bytes=10-20\r\n"
        b"Cookie: stale_after=2; fake=fake_value\r\n"
        b"\r\n"
    )


class TestRequestParser:
    """Tests for RequestParser."""

    def test_parse_request_line(self, range_request: bytes):
        parser = RequestParser()
        request = parser.parse(range_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/range/30"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_target_is_kept_verbatim(self, range_request: bytes):
        request = parse_request(range_request)

        assert request.target == "/range/30?chunk_size=5&duration=1"

    def test_target_keeps_percent_encoding(self):
        raw = b"GET /digest-auth/auth/a%20b/pw HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/digest-auth/auth/a b/pw"
        assert request.target == "/digest-auth/auth/a%20b/pw"

    def test_parse_headers(self, range_request: bytes):
        request = parse_request(range_request)

        assert request.host == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.get_header("Range") == "bytes=10-20"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, range_request: bytes):
        request = parse_request(range_request)

        assert request.get_query("chunk_size") == "5"
        assert request.get_query("duration") == "1"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_blank_query_values_are_kept(self):
        raw = b"GET /range/10?chunk_size= HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.get_query("chunk_size") == ""

    def test_parse_body(self):
        raw = b"POST /bearer HTTP/1.1\r\nContent-Length: 9\r\n\r\ntest body"
        request = parse_request(raw)

        assert request.content_length == 9
        assert request.body == b"test body"

    def test_pipelined_bytes_are_not_part_of_body(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 2\r\n\r\nokGET / HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.body == b"ok"

    def test_invalid_content_length(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: abc\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_negative_content_length(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: -5\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_invalid_method(self):
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 405

    def test_unsupported_version(self):
        raw = b"GET / HTTP/2.0\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 505

    def test_malformed_request_line(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET\r\nHost: test\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_missing_header_terminator(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_dots_in_path_segments_are_accepted(self):
        raw = b"GET /basic-auth/alice/a..b HTTP/1.1\r\nHost: test\r\n\r\n"

        request = parse_request(raw)

        assert request.path == "/basic-auth/alice/a..b"

    def test_request_too_large(self):
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\nX-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_10_closes_by_default(self):
        request = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")

        assert request.version == "HTTP/1.0"
        assert request.is_keep_alive is False

    def test_repeated_headers_are_joined(self):
        raw = b"GET / HTTP/1.1\r\nX-Forwarded-Proto: https\r\nX-Forwarded-Proto: http\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("X-Forwarded-Proto") == "https, http"

    def test_repeated_cookie_lines_form_one_cookie_string(self):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Cookie: stale_after=never\r\n"
            b"Cookie: fake=fake_value\r\n"
            b"\r\n"
        )
        request = parse_request(raw)

        assert request.get_header("Cookie") == "stale_after=never; fake=fake_value"
        assert request.get_cookie("stale_after") == "never"
        assert request.get_cookie("fake") == "fake_value"

    def test_case_insensitive_headers(self):
        raw = b"GET / HTTP/1.1\r\nAUTHORIZATION: Bearer abc\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("Authorization") == "Bearer abc"
        assert request.get_header("authorization") == "Bearer abc"

    def test_tls_flag_is_stamped(self):
        parser = RequestParser(tls=True)
        request = parser.parse(b"GET / HTTP/1.1\r\n\r\n")

        assert request.tls is True
        assert request.scheme == "https"


class TestHTTPRequest:
    """Tests for the HTTPRequest accessors."""

    def test_target_defaults_to_path(self):
        request = HTTPRequest(method="GET", path="/bearer")

        assert request.target == "/bearer"

    def test_remote_addr(self):
        request = HTTPRequest(method="GET", path="/", client_address=("10.0.0.7", 4242))

        assert request.remote_addr == "10.0.0.7:4242"

    def test_scheme_from_forwarded_proto(self):
        request = HTTPRequest(
            method="GET",
            path="/",
            headers={"x-forwarded-proto": "HTTPS, http"},
        )

        assert request.scheme == "https"

    def test_forwarded_proto_wins_over_tls(self):
        request = HTTPRequest(
            method="GET",
            path="/",
            headers={"x-forwarded-proto": "http"},
            tls=True,
        )

        assert request.scheme == "http"

    def test_scheme_defaults_to_http(self):
        assert HTTPRequest(method="GET", path="/").scheme == "http"

    def test_cookies(self):
        request = HTTPRequest(
            method="GET",
            path="/",
            headers={"cookie": 'stale_after=2; fake=fake_value; last_nonce="abc"'},
        )

        assert request.cookies == {
            "stale_after": "2",
            "fake": "fake_value",
            "last_nonce": "abc",
        }
        assert request.get_cookie("fake") == "fake_value"
        assert request.get_cookie("missing") is None

    def test_has_header_distinguishes_empty_value(self):
        request = HTTPRequest(method="GET", path="/", headers={"cookie": ""})

        assert request.has_header("Cookie") is True
        assert request.has_header("Authorization") is False
        assert request.cookies == {}

    def test_get_header_default(self):
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"


class TestParseCookieHeader:

    def test_first_value_wins(self):
        assert parse_cookie_header("a=1; a=2") == {"a": "1"}

    def test_skips_pairs_without_equals(self):
        assert parse_cookie_header("junk; b=2; =3") == {"b": "2"}

    def test_empty_value(self):
        assert parse_cookie_header("fake=") == {"fake": ""}
