"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this service can put on the wire, with reason phrases.

Every endpoint here is a probe for one piece of HTTP behaviour, so the set
is deliberately small and each code has a specific meaning in this server:

    ┌────────┬─────────────────────────────────────────────────────────────┐
    │  Code  │ Where it comes from                                         │
    ├────────┼─────────────────────────────────────────────────────────────┤
    │  200   │ Authenticated, or a Range request covering the whole body  │
    │  206   │ Range request for a sub-span of the body                    │
    │  400   │ Malformed request line, or non-numeric range size           │
    │  401   │ Auth challenge (Digest, Basic, Bearer)                      │
    │  403   │ Digest "require-cookie" precondition failed                 │
    │  404   │ No route, hidden-basic-auth failure, oversized range        │
    │  405   │ Route exists but not for this method                        │
    │  408   │ Client never finished sending its request                   │
    │  413   │ Request larger than max_request_size                        │
    │  416   │ Range not satisfiable against the resource length           │
    │  500   │ Handler raised                                              │
    │  503   │ Worker pool saturated                                       │
    │  505   │ Not HTTP/1.0 or HTTP/1.1                                    │
    └────────┴─────────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes.

    IntEnum so a status compares equal to its number:

        >>> HTTPStatus.PARTIAL_CONTENT == 206
        True
        >>> HTTPStatus.PARTIAL_CONTENT.phrase
        'Partial Content'
    """

    # 2xx
    OK = 200
    PARTIAL_CONTENT = 206

    # 4xx
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    RANGE_NOT_SATISFIABLE = 416

    # 5xx
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line (``HTTP/1.1 206 Partial Content``)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """4xx or 5xx. Used by the access log to pick a level."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.RANGE_NOT_SATISFIABLE: "Range Not Satisfiable",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
