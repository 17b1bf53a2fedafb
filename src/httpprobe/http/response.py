"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

HTTP/1.1 responses and a fluent builder for them (RFC 7230).

=============================================================================
TWO WAYS A RESPONSE LEAVES THE SERVER
=============================================================================

    Buffered (auth endpoints, errors):

        HTTPResponse.to_bytes()
            HTTP/1.1 401 Unauthorized\r\n
            WWW-Authenticate: Digest qop=auth, realm=...\r\n
            Set-Cookie: stale_after=never; Path=/\r\n
            Set-Cookie: fake=fake_value; Path=/\r\n
            Content-Length: 0\r\n
            \r\n

    Streamed (range endpoint):

        HTTPResponse.head_bytes()       sent once
            HTTP/1.1 206 Partial Content\r\n
            Content-Range: bytes 10-20/30\r\n
            Content-Length: 11\r\n
            \r\n
        response.stream                 paced by chunk.delay; the last
            RangeChunk(b"klmno", 0.1)   partial chunk sleeps before it
            RangeChunk(b"pqrst", 0.1)   is written (delay_first)
            RangeChunk(b"u",     0.02, True)

A streamed response must carry its own Content-Length; the server never
buffers a stream to measure it.

=============================================================================
COOKIES
=============================================================================

Headers are a plain dict, so a name can only appear once. Set-Cookie is
the one header that legitimately repeats, so cookies are kept in their
own list and written one line each:

    builder.cookie("stale_after", "3").cookie("fake", "fake_value")

    Set-Cookie: stale_after=3; Path=/
    Set-Cookie: fake=fake_value; Path=/

Values that reach a header come from the request (a ``stale_after``
path segment, a client's nonce), so they are cleaned on the way out:

    cookie values    bytes outside the RFC 6265 cookie-octet set are
                     dropped; a value with a space or comma is quoted
    header values    CR and LF become spaces

Neither can end a header line early, so a request can never add
headers of its own to the response.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Iterable, List, Union
import json

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "httpprobe/1.0"


def _is_cookie_value_char(char: str) -> bool:
    return "\x20" <= char < "\x7f" and char not in '";\\'


def sanitize_cookie_value(value: str) -> str:
    """
    Drop characters that may not appear in a cookie value.

        >>> sanitize_cookie_value("1\\r\\nX-Injected: yes")
        '"1X-Injected: yes"'

    Spaces and commas are allowed but force the value into quotes.
    """
    value = "".join(char for char in value if _is_cookie_value_char(char))
    if " " in value or "," in value:
        return f'"{value}"'
    return value


def sanitize_header_value(value: str) -> str:
    """Replace CR and LF so a value cannot end its header line."""
    return value.replace("\r", " ").replace("\n", " ")


def format_set_cookie(name: str, value: str, path: str = "/", secure: bool = False) -> str:
    """
    Render a Set-Cookie header value.

        >>> format_set_cookie("fake", "fake_value", secure=True)
        'fake=fake_value; Path=/; Secure'
    """
    cookie = f"{name}={sanitize_cookie_value(value)}; Path={path}"
    if secure:
        cookie += "; Secure"
    return cookie


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Attributes:
        status:  HTTPStatus of the response
        headers: Header name → value (Set-Cookie goes in ``cookies``)
        body:    Body bytes for a buffered response
        cookies: Rendered Set-Cookie values, one header line each
        stream:  Chunks of a paced body; when set, ``body`` is ignored
        version: Protocol version for the status line
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    cookies: List[str] = field(default_factory=list)
    stream: Optional[Iterable[Any]] = field(default=None, repr=False)
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """``HTTP/1.1 206 Partial Content``"""
        return f"{self.version} {self.status} {self.status.phrase}"

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header; returns self for chaining."""
        self.headers[name] = value
        return self

    def set_cookie(self, name: str, value: str, secure: bool = False) -> "HTTPResponse":
        """Append a Set-Cookie line; returns self for chaining."""
        self.cookies.append(format_set_cookie(name, value, secure=secure))
        return self

    def head_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the status line and headers, up to and including the
        blank separator line.

        Content-Length, Date and Server are filled in when missing. For a
        streamed response Content-Length is taken as given.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers and not self.is_streaming:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {sanitize_header_value(str(value))}")
        for cookie in self.cookies:
            lines.append(f"Set-Cookie: {sanitize_header_value(cookie)}")
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n"

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize a buffered response.

        A streamed response is materialized without its pacing; the
        server uses head_bytes() plus the stream instead.
        """
        if self.is_streaming:
            body = b"".join(chunk.data for chunk in self.stream)
            return self.head_bytes(server_name) + body
        return self.head_bytes(server_name) + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

    ==========================================================================
    USAGE
    ==========================================================================

        # Digest challenge
        (ResponseBuilder()
            .status(HTTPStatus.UNAUTHORIZED)
            .header("WWW-Authenticate", challenge)
            .cookie("stale_after", "never")
            .cookie("fake", "fake_value")
            .build())

        # Partial content
        (ResponseBuilder()
            .status(HTTPStatus.PARTIAL_CONTENT)
            .header("Content-Range", "bytes 10-20/30")
            .header("Content-Length", "11")
            .stream(iter_range_chunks(10, 20, chunk_size))
            .build())

    Every method but build() returns ``self``.
    ==========================================================================
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._cookies: List[str] = []
        self._stream: Optional[Iterable[Any]] = None

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def cookie(self, name: str, value: str, secure: bool = False) -> "ResponseBuilder":
        """
        Add a Set-Cookie header (``Path=/``, plus ``Secure`` if asked).

        Cookies are added in call order and a name may be set more than
        once; the client keeps the last one.
        """
        self._cookies.append(format_set_cookie(name, value, secure=secure))
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """Serialize ``data`` as the body with a JSON Content-Type."""
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def stream(self, chunks: Iterable[Any]) -> "ResponseBuilder":
        """
        Deliver the body as paced chunks.

        ``chunks`` yields objects with ``data`` and ``delay`` attributes,
        optionally ``delay_first`` (RangeChunk). The caller sets
        Content-Length.
        """
        self._stream = chunks
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            cookies=self._cookies,
            stream=self._stream,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231 §7.1.1.1).

    Example: ``Wed, 01 Jan 2026 12:00:00 GMT``. Always GMT.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# ERROR RESPONSES
# =============================================================================
#
# Every error this server produces on its own (as opposed to the probe
# endpoints' deliberate 401/403/404/416) is a small JSON object:
#
#     {"error": "<message>"}
#

def json_error(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """``{"error": message}`` with the given status; message defaults to the phrase."""
    return (ResponseBuilder()
        .status(status)
        .json({"error": message or status.phrase})
        .build())


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return json_error(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return json_error(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed_methods: List[str]) -> HTTPResponse:
    """
    405 with the Allow header RFC 7231 §6.5.5 requires.
    """
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json({"error": "Method Not Allowed", "allowed": allowed_methods})
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500. Keep ``message`` generic; details belong in the log."""
    return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, message)
