"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Turns bytes from a socket into HTTPRequest objects and HTTPResponse
objects back into bytes, and routes between the two.

    ┌──────────────┬────────────────────────────────────────────────────┐
    │ Module       │ Responsibility                                     │
    ├──────────────┼────────────────────────────────────────────────────┤
    │ request      │ RequestParser, HTTPRequest, Cookie header parsing  │
    │ response     │ HTTPResponse, ResponseBuilder, JSON error helpers  │
    │ router       │ ":param" routes, 404 / 405                         │
    │ status_codes │ HTTPStatus enum with reason phrases                │
    │ ranges       │ Range header, satisfiability, paced byte chunks    │
    └──────────────┴────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_cookie_header
from .response import (
    HTTPResponse,
    ResponseBuilder,
    format_set_cookie,
    json_error,
    bad_request,
    not_found,
    method_not_allowed,
    internal_error,
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus
from .ranges import (
    RangeSpec,
    RangeChunk,
    parse_request_range,
    get_request_range,
    is_satisfiable,
    iter_range_chunks,
)


__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_cookie_header",

    "HTTPResponse",
    "ResponseBuilder",
    "format_set_cookie",
    "json_error",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",

    "Router",
    "Route",
    "RouteMatch",

    "HTTPStatus",

    "RangeSpec",
    "RangeChunk",
    "parse_request_range",
    "get_request_range",
    "is_satisfiable",
    "iter_range_chunks",
]
