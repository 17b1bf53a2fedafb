"""
=============================================================================
HTTPPROBE - HTTP Request/Response Testing Service
=============================================================================

A small httpbin-style service for exercising HTTP clients, running on a
threaded HTTP/1.1 server written directly against sockets.

=============================================================================
WHAT IT PROBES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  DIGEST AUTH     challenge / response with MD5, SHA-256, SHA-512,   │
    │                  stale nonces and cookie preconditions, all state   │
    │                  carried in client cookies                          │
    │                                                                     │
    │  BASIC / BEARER  plain credential checks, 401 or hidden 404         │
    │                                                                     │
    │  RANGE           Range header parsing, 200 / 206 / 416, bodies      │
    │                  written in paced chunks over a chosen duration     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpprobe/
    ├── __main__.py          # python -m httpprobe
    ├── app.py               # route table, create_app / create_server
    ├── server.py            # HTTPServer: keep-alive loop, paced delivery
    ├── config.py            # ServerConfig
    ├── auth/                # digest, basic and bearer primitives
    ├── handlers/            # endpoint handlers
    ├── http/                # request, response, router, status, ranges
    ├── middleware/          # pipeline, access log
    └── core/                # sockets, connections, thread pool

=============================================================================
QUICK START
=============================================================================

    from httpprobe import ServerConfig, create_server

    create_server(ServerConfig(port=8080)).run()

    $ curl --digest -u alice:s3cret http://127.0.0.1:8080/digest-auth/auth/alice/s3cret
    {"authenticated": true, "user": "alice"}

    $ curl -H "Range: bytes=10-20" http://127.0.0.1:8080/range/30
    klmnopqrstu

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig
from .app import create_app, create_server

__all__ = ["HTTPServer", "ServerConfig", "create_app", "create_server", "__version__"]
