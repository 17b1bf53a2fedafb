"""
=============================================================================
APPLICATION
=============================================================================

Route table of the probe service and the factory that builds a ready
server around it.

    GET /                                                   route index
    GET /digest-auth/:qop/:user/:passwd                     Digest, MD5
    GET /digest-auth/:qop/:user/:passwd/:algorithm          Digest, chosen hash
    GET /digest-auth/:qop/:user/:passwd/:algorithm/:stale_after
    GET /basic-auth/:user/:passwd                           Basic, 401 on failure
    GET /hidden-basic-auth/:user/:passwd                    Basic, 404 on failure
    GET /bearer                                             Bearer token echo
    GET /range/:numbytes                                    Range / 206 / 416

=============================================================================
"""

from typing import Optional

from .config import ServerConfig
from .handlers import DigestAuthHandler, BasicAuthHandler, bearer_auth, RangeHandler
from .http import HTTPRequest, HTTPResponse, HTTPStatus, ResponseBuilder, Router
from .middleware import LoggingMiddleware
from .server import HTTPServer


def create_app(config: Optional[ServerConfig] = None) -> Router:
    """Register every probe endpoint on a new Router."""
    config = config or ServerConfig()
    router = Router()

    digest = DigestAuthHandler(realm=config.auth_realm)
    basic = BasicAuthHandler(realm=config.auth_realm)
    hidden_basic = BasicAuthHandler(
        realm=config.auth_realm,
        failure_status=HTTPStatus.NOT_FOUND,
    )
    ranged = RangeHandler(
        max_bytes=config.max_range_bytes,
        default_chunk_size=config.default_chunk_size,
    )

    @router.get("/", name="index")
    def index(request: HTTPRequest) -> HTTPResponse:
        return (ResponseBuilder()
            .json({
                "server": config.server_name,
                "endpoints": [
                    {"path": route.path, "description": route.meta.get("description", "")}
                    for route in router.routes()
                    if route.path != "/"
                ],
            }, pretty=True)
            .build())

    router.add_route(
        "/digest-auth/:qop/:user/:passwd", digest,
        method="GET", name="digest-auth",
        description="Digest authentication (MD5).",
    )
    router.add_route(
        "/digest-auth/:qop/:user/:passwd/:algorithm", digest,
        method="GET", name="digest-auth-algorithm",
        description="Digest authentication with MD5, SHA-256 or SHA-512.",
    )
    router.add_route(
        "/digest-auth/:qop/:user/:passwd/:algorithm/:stale_after", digest,
        method="GET", name="digest-auth-stale-after",
        description="Digest authentication; the nonce goes stale after N logins.",
    )
    router.add_route(
        "/basic-auth/:user/:passwd", basic,
        method="GET", name="basic-auth",
        description="Basic authentication.",
    )
    router.add_route(
        "/hidden-basic-auth/:user/:passwd", hidden_basic,
        method="GET", name="hidden-basic-auth",
        description="Basic authentication answering 404 instead of 401.",
    )
    router.add_route(
        "/bearer", bearer_auth,
        method="GET", name="bearer",
        description="Bearer token authentication.",
    )
    router.add_route(
        "/range/:numbytes", ranged,
        method="GET", name="range",
        description="Range requests; ?chunk_size= and ?duration= pace the body.",
    )

    return router


def create_server(config: Optional[ServerConfig] = None) -> HTTPServer:
    """HTTPServer serving create_app(config) behind the access log."""
    config = config or ServerConfig()
    server = HTTPServer(config, router=create_app(config))
    server.use(LoggingMiddleware(log_format=config.log_format))
    return server
