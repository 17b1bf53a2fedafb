"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns raw HTTP/1.1 request bytes into HTTPRequest objects (RFC 7230).

=============================================================================
WHAT THE PROBE ENDPOINTS READ FROM A REQUEST
=============================================================================

    GET /digest-auth/auth/alice/s3cret?require-cookie=1 HTTP/1.1\r\n
    ─┬─ ──────────────────────┬───────────────────────  ────┬────
     │                        │                             │
   method             target (kept verbatim)             version
                              │
                 ┌────────────┴──────────────┐
                 │                           │
               path                     query_params
     /digest-auth/auth/alice/s3cret   {"require-cookie": ["1"]}

    Host: localhost:8080\r\n
    Authorization: Digest username="alice", ...\r\n     ─► digest engine
    Cookie: stale_after=2; fake=fake_value\r\n           ─► request.cookies
    Range: bytes=10-20\r\n                               ─► range engine
    X-Forwarded-Proto: https\r\n                         ─► request.scheme
    \r\n

The raw ``target`` matters: a Digest client hashes the exact
request-target it sent (``method:uri``), so verification has to use the
same string, not the decoded path.

=============================================================================
PARSING RULES
=============================================================================

1. Headers end at the first CRLF CRLF; the body is Content-Length bytes.
2. Header names are case-insensitive and stored lowercase. Repeated
   headers are joined with ", ", except Cookie lines, which are joined
   with "; " so they read as one cookie-string (RFC 6265 §5.4).
3. Methods and versions are validated: unknown method → 405,
   anything but HTTP/1.0 or HTTP/1.1 → 505.
4. Path segments are opaque: probe routes carry user names and
   passwords, so ".." is an ordinary value.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List, Tuple
from urllib.parse import parse_qs, urlparse, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when an HTTP request cannot be parsed.

    Carries the status the server should answer with:

        400 Bad Request                 - malformed syntax
        405 Method Not Allowed          - unknown method
        413 Payload Too Large           - over max_request_size
        505 HTTP Version Not Supported  - not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         "GET", "POST", ...
        path:           Decoded path without the query string
        target:         Request-target exactly as it appeared on the
                        request line ("/range/30?chunk_size=5")
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Lowercase name → value
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes
        path_params:    Filled in by the router from ":name" segments
        client_address: (ip, port) of the peer
        tls:            True when the connection was accepted over TLS
        raw:            The unparsed request bytes

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    target: str = ""

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: Tuple[str, int] = ("", 0)
    tls: bool = False
    raw: bytes = b""

    _cookies: Optional[Dict[str, str]] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.target:
            self.target = self.path

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_length(self) -> int:
        """Content-Length as an integer, 0 if missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def remote_addr(self) -> str:
        """
        Peer address as "ip:port".

        Folded into Digest nonces, so two clients never receive the same
        nonce for the same instant.
        """
        ip, port = self.client_address
        return f"{ip}:{port}"

    @property
    def scheme(self) -> str:
        """
        Effective scheme of the request.

        A reverse proxy terminating TLS tells us via X-Forwarded-Proto,
        which wins over how the socket itself was accepted.
        """
        forwarded = self.headers.get("x-forwarded-proto", "")
        if forwarded:
            return forwarded.split(",")[0].strip().lower()
        return "https" if self.tls else "http"

    @property
    def cookies(self) -> Dict[str, str]:
        """
        Cookies from the Cookie header, parsed once.

        =====================================================================
        COOKIE HEADER FORMAT (RFC 6265 §4.2)
        =====================================================================

            Cookie: stale_after=2; fake=fake_value; last_nonce="ab12"
                    ─────┬─────  ───────┬───────  ────────┬───────
                         └──── name=value pairs split on ";" ────┘

        Surrounding double quotes are dropped. When a name repeats, the
        first occurrence wins.
        =====================================================================
        """
        if self._cookies is None:
            self._cookies = parse_cookie_header(self.headers.get("cookie", ""))
        return self._cookies

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection should stay open after this request.

            HTTP/1.1: keep alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Header value by case-insensitive name."""
        return self.headers.get(name.lower(), default)

    def has_header(self, name: str) -> bool:
        """
        Whether the header was sent at all, even with an empty value.

        The digest engine distinguishes "no Cookie header" from "Cookie
        header without the cookie we want".
        """
        return name.lower() in self.headers

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        First value of a query parameter.

        Example:
            # /range/100?chunk_size=10&chunk_size=20
            request.get_query("chunk_size")  # "10"
        """
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Cookie value by name."""
        return self.cookies.get(name, default)


def parse_cookie_header(value: str) -> Dict[str, str]:
    """
    Parse a Cookie request header into a name → value dict.

    Pairs without "=" and empty names are skipped.
    """
    cookies: Dict[str, str] = {}
    for part in value.split(";"):
        name, sep, cookie_value = part.partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        cookie_value = cookie_value.strip()
        if len(cookie_value) >= 2 and cookie_value[0] == cookie_value[-1] == '"':
            cookie_value = cookie_value[1:-1]
        cookies.setdefault(name, cookie_value)
    return cookies


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PIPELINE
    ==========================================================================

        raw bytes
            │
            ├─ 1. size check ............... > max_request_size → 413
            ├─ 2. find CRLF CRLF ........... missing → 400 "Incomplete"
            ├─ 3. request line ............. bad → 400 / 405 / 505
            ├─ 4. headers .................. lowercase names
            ├─ 5. body ..................... Content-Length bytes
            ▼
        HTTPRequest

    ==========================================================================
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024, tls: bool = False):
        """
        Args:
            max_request_size: Requests above this many bytes get 413.
            tls: Stamped onto every parsed request (see HTTPRequest.scheme).
        """
        self.max_request_size = max_request_size
        self.tls = tls

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest.

        Args:
            data: Raw request bytes from the socket.
            client_address: Peer (ip, port).

        Returns:
            The parsed request.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request")

        method, target, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        # Anything past Content-Length belongs to the next pipelined request
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            target=target,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            tls=self.tls,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> Tuple[str, str, str, Dict[str, List[str]], str]:
        """
        Parse ``METHOD SP REQUEST-TARGET SP HTTP-VERSION``.

        Returns:
            (method, target, path, query_params, version)

        Raises:
            HTTPParseError: If the line is malformed.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        parsed = urlparse(target)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, target, path, query_params, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """
        Parse header lines into a lowercase-keyed dict.

        Continuation lines (leading whitespace) extend the previous header;
        repeated names are joined with ", " (RFC 7230 §3.2.2), Cookie
        lines with "; ".
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                separator = "; " if name == "cookie" else ", "
                headers[name] += separator + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """One-shot helper around RequestParser."""
    parser = RequestParser(max_request_size=max_size)
    return parser.parse(data, client_address)
