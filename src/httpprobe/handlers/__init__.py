"""
=============================================================================
PROBE HANDLERS
=============================================================================

Request handlers behind the probe endpoints. Each is a callable taking an
HTTPRequest and returning an HTTPResponse, registered on the Router by
``httpprobe.app.create_app``.

    ┌────────────────────┬────────────────────────────────────────────────┐
    │ Handler            │ Endpoints                                      │
    ├────────────────────┼────────────────────────────────────────────────┤
    │ DigestAuthHandler  │ /digest-auth/...                               │
    │ BasicAuthHandler   │ /basic-auth/..., /hidden-basic-auth/...        │
    │ bearer_auth        │ /bearer                                        │
    │ RangeHandler       │ /range/:numbytes                               │
    └────────────────────┴────────────────────────────────────────────────┘

=============================================================================
"""

from .auth import DigestAuthHandler, BasicAuthHandler, bearer_auth
from .range import RangeHandler


__all__ = [
    "DigestAuthHandler",
    "BasicAuthHandler",
    "bearer_auth",
    "RangeHandler",
]
