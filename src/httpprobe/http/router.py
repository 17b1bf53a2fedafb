"""
=============================================================================
URL ROUTER
=============================================================================

Maps ``METHOD /path`` to handler callables, pulling ``:param`` segments
out of the path.

=============================================================================
THE PROBE ROUTE TABLE
=============================================================================

    GET  /digest-auth/:qop/:user/:passwd
    GET  /digest-auth/:qop/:user/:passwd/:algorithm
    GET  /digest-auth/:qop/:user/:passwd/:algorithm/:stale_after
    GET  /basic-auth/:user/:passwd
    GET  /hidden-basic-auth/:user/:passwd
    GET  /bearer
    GET  /range/:numbytes

    GET /digest-auth/auth/alice/s3cret/SHA-256
        │
        ▼
    ^/digest-auth/(?P<qop>[^/]+)/(?P<user>[^/]+)/(?P<passwd>[^/]+)/(?P<algorithm>[^/]+)$
        │
        ▼
    path_params = {"qop": "auth", "user": "alice",
                   "passwd": "s3cret", "algorithm": "SHA-256"}

Each ``:name`` matches exactly one non-empty segment, so the three digest
routes never shadow one another: the segment count picks the route.

=============================================================================
NO MATCH
=============================================================================

    path matches some route, method doesn't  → 405 + Allow header
    path matches nothing                     → 404

First registered, first matched.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, Any, List, Tuple
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        Route(
            path="/range/:numbytes",
            method="GET",
            handler=RangeHandler(...),
            name="range",
            meta={"description": "..."},
        )
    """

    path: str
    method: Optional[str]
    handler: Handler
    name: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """A matched route plus the parameters pulled out of the path."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Request router with ``:param`` path segments.

    Handlers are plain callables (functions or objects with ``__call__``)
    taking an HTTPRequest and returning an HTTPResponse:

        router = Router()

        @router.get("/bearer")
        def bearer(request):
            ...

        router.add_route("/range/:numbytes", RangeHandler(config), method="GET")
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
        **meta: Any
    ) -> Route:
        """
        Register a route.

        Args:
            path: URL pattern, e.g. "/basic-auth/:user/:passwd"
            handler: Callable taking a request, returning a response
            method: HTTP method, or None for any
            name: Optional route name
            **meta: Free-form metadata kept on the Route

        Returns:
            The registered Route
        """
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            meta=meta,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> Tuple[re.Pattern, List[str]]:
        """
        Compile a route pattern into an anchored regex.

            "/range/:numbytes"  →  ^/range/(?P<numbytes>[^/]+)$

        Static segments are re.escape()d, so "SHA-256"-style literals are safe.
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            # Root route
            regex_parts.append("/")

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # MATCHING
    # =========================================================================

    @staticmethod
    def _normalize(path: str) -> str:
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        First route matching both method and path, or None.
        """
        path = self._normalize(path)

        for route in self._routes:
            if route.method and route.method != method.upper():
                continue

            match = route._pattern.match(path)
            if match:
                return RouteMatch(route=route, params=match.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """
        Methods registered for a path, for the 405 Allow header.
        """
        path = self._normalize(path)
        methods = set()

        for route in self._routes:
            if route._pattern.match(path):
                if route.method is None:
                    return ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
                methods.add(route.method)

        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request: handler response, 405 or 404.
        """
        match = self.match(request.method, request.path)

        if match:
            request.path_params = match.params
            return match.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)

        return not_found(f"No route matches {request.path}")

    # =========================================================================
    # DECORATORS
    # =========================================================================

    def route(
        self,
        path: str,
        method: Optional[str] = None,
        name: Optional[str] = None,
        **meta: Any
    ) -> Callable[[Handler], Handler]:
        """Decorator form of add_route(); returns the handler unchanged."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name, **meta)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None, **meta: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name, **meta)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """All registered routes, in registration order."""
        return list(self._routes)
