"""
=============================================================================
MIDDLEWARE
=============================================================================

Middleware wraps the router so cross-cutting work (access logging, request
ids) happens once for every endpoint instead of inside each handler.

    request ──► LoggingMiddleware ──► ... ──► router.handle ──┐
                                                              │
    response ◄── LoggingMiddleware ◄── ... ◄──────────────────┘

Each middleware is a callable ``(request, next) -> response``. It may
return early without calling next(), or call next() and adjust what
comes back. For a streamed /range response, "what comes back" is the
head and a chunk generator: the body has not been produced yet.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class Stamp(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Stamp", "1")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Handle ``request``, normally by calling ``next(request)``."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    An ordered list of middleware around a final handler.

    The first middleware added is the outermost: it sees the request
    first and the response last.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware(log_format="json"))
        handler = pipeline.wrap(router.handle)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around ``handler``.

        Wrapping runs in reverse so that [A, B] becomes A(B(handler)).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
