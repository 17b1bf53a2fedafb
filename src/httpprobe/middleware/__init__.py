"""
=============================================================================
MIDDLEWARE
=============================================================================

Request/response wrappers applied around the router.

    LoggingMiddleware    access log line per request, X-Request-ID header

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline
from .logging import LoggingMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "LoggingMiddleware",
]
