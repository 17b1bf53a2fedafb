"""
=============================================================================
RANGE PROBE HANDLER
=============================================================================

``GET /range/:numbytes`` serves a synthetic resource of ``numbytes``
bytes (``abcd...zabc...``) and honours a single ``Range: bytes=...``
header, optionally streaming it slowly.

=============================================================================
QUERY PARAMETERS
=============================================================================

    chunk_size   Bytes per write. Default 10240. Unparseable → 1.
    duration     Seconds the whole resource would take to send.
                 Default 0 (no pacing). Unparseable → 0.

Pacing is per byte (duration / numbytes), so a sub-range takes
proportionally less time than the whole resource.

=============================================================================
OUTCOMES
=============================================================================

    numbytes not an integer           400  text/plain
    numbytes < 0 or > max             404  text/plain, ETag, Accept-Ranges
    range not satisfiable             416  empty, Content-Range: bytes */n
    span is [0, n-1]                  200  streamed
    any other span                    206  streamed

    $ curl -i -H 'Range: bytes=10-20' localhost:8080/range/30
    HTTP/1.1 206 Partial Content
    Content-Type: application/octet-stream
    ETag: range30
    Accept-Ranges: bytes
    Content-Length: 11
    Content-Range: bytes 10-20/30

    klmnopqrstu

=============================================================================
"""

import logging

from ..http.ranges import (
    content_range,
    get_request_range,
    is_satisfiable,
    iter_range_chunks,
    parse_int,
    pause_per_byte,
    unsatisfied_content_range,
)
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 100 * 1024
DEFAULT_CHUNK_SIZE = 10 * 1024


class RangeHandler:
    """
    Handler for ``/range/:numbytes``.

    Args:
        max_bytes: Largest resource that will be served.
        default_chunk_size: Chunk size when ``chunk_size`` is not given.
    """

    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_BYTES,
        default_chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.max_bytes = max_bytes
        self.default_chunk_size = default_chunk_size

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        raw_numbytes = request.path_params.get("numbytes", "")
        numbytes = parse_int(raw_numbytes)
        if numbytes is None:
            return _text_error(
                HTTPStatus.BAD_REQUEST,
                f"invalid number of bytes: {raw_numbytes!r}",
            )

        etag = f"range{numbytes}"

        if numbytes < 0 or numbytes > self.max_bytes:
            response = _text_error(
                HTTPStatus.NOT_FOUND,
                f"number of bytes must be in the range (0, {self.max_bytes}]",
            )
            response.set_header("ETag", etag)
            response.set_header("Accept-Ranges", "bytes")
            return response

        chunk_size = self._chunk_size(request)
        duration = self._duration(request)
        pause = pause_per_byte(duration, numbytes)

        first, last = get_request_range(request.get_header("Range") or None, numbytes)

        if not is_satisfiable(first, last, numbytes):
            return (ResponseBuilder()
                .status(HTTPStatus.RANGE_NOT_SATISFIABLE)
                .header("ETag", etag)
                .header("Accept-Ranges", "bytes")
                .header("Content-Range", unsatisfied_content_range(numbytes))
                .header("Content-Length", "0")
                .build())

        if first == 0 and last == numbytes - 1:
            status = HTTPStatus.OK
        else:
            status = HTTPStatus.PARTIAL_CONTENT

        length = last + 1 - first
        logger.debug(
            f"Range {first}-{last}/{numbytes} in chunks of {chunk_size}, "
            f"{pause:.6f}s per byte"
        )

        return (ResponseBuilder()
            .status(status)
            .header("Content-Type", "application/octet-stream")
            .header("ETag", etag)
            .header("Accept-Ranges", "bytes")
            .header("Content-Length", str(length))
            .header("Content-Range", content_range(first, last, numbytes))
            .stream(iter_range_chunks(first, last, chunk_size, pause))
            .build())

    def _chunk_size(self, request: HTTPRequest) -> int:
        value = request.get_query("chunk_size")
        if not value:
            return self.default_chunk_size
        return max(1, parse_int(value) or 0)

    def _duration(self, request: HTTPRequest) -> float:
        value = request.get_query("duration")
        if not value:
            return 0.0
        return float(parse_int(value) or 0)


def _text_error(status: HTTPStatus, message: str) -> HTTPResponse:
    return ResponseBuilder().status(status).text(message).build()
