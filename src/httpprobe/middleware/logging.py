"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One log line per request on the "httpprobe.access" logger, and an
X-Request-ID header on every response so a client can quote the line
that belongs to its request.

=============================================================================
FORMATS
=============================================================================

    text:
    127.0.0.1 - - [19/Oct/2026:10:55:36 +0000] "GET /range/30" 206 11 0.41ms rid=1f2e3d4c

    json:
    {"request_id": "1f2e3d4c", "method": "GET", "path": "/range/30",
     "query": "", "client_ip": "127.0.0.1", "user_agent": "curl/8.5",
     "status_code": 206, "content_length": 11, "duration_ms": 0.41,
     "timestamp": "19/Oct/2026:10:55:36 +0000"}

=============================================================================
LEVELS
=============================================================================

    2xx / 3xx    INFO
    4xx          WARNING     (every digest challenge is a 401)
    5xx          ERROR

For a streamed /range body the line is written when the head is ready;
duration_ms covers the handler, not the paced delivery that follows, and
content_length is the declared Content-Length.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional, List
from dataclasses import dataclass, asdict
from urllib.parse import urlencode

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("httpprobe.access")


@dataclass
class RequestLog:
    """One access-log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms rid={self.request_id}'
        )


def _response_length(response: HTTPResponse) -> int:
    declared = response.headers.get("Content-Length")
    if declared is not None:
        try:
            return int(declared)
        except ValueError:
            pass
    return len(response.body)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class LoggingMiddleware(Middleware):
    """
    Access logging with request ids.

    Args:
        log_format: "text" or "json".
        include_request_id: Add X-Request-ID to responses.
        skip_paths: Exact paths that are not logged.
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        skip_paths: Optional[List[str]] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = uuid.uuid4().hex[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms) rid={request_id}"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=urlencode(request.query_params, doseq=True),
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=_response_length(response),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        line = json.dumps(entry.to_dict()) if self.log_format == "json" else entry.to_text()
        logger.log(_level_for(entry.status_code), line)

        return response
