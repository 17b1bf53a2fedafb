"""
=============================================================================
AUTHENTICATION PRIMITIVES
=============================================================================

Header parsing, hashing and challenge generation for the auth probe
endpoints. No request or response objects in here; the handlers in
``httpprobe.handlers.auth`` wire these to HTTP.

    ┌──────────┬──────────────────────────────────────────────────────────┐
    │ Module   │ Responsibility                                           │
    ├──────────┼──────────────────────────────────────────────────────────┤
    │ digest   │ HA1/HA2, credential parsing, verification, challenges   │
    │ basic    │ Basic credentials and Bearer tokens                      │
    └──────────┴──────────────────────────────────────────────────────────┘

=============================================================================
"""

from .digest import (
    DigestAlgorithm,
    DigestCredentials,
    DigestParseError,
    build_challenge,
    check_digest_auth,
    compile_digest_response,
    ha1,
    ha2,
    hex_digest,
    next_stale_after,
    parse_header_values,
)
from .basic import parse_basic_auth, parse_bearer_token


__all__ = [
    "DigestAlgorithm",
    "DigestCredentials",
    "DigestParseError",
    "build_challenge",
    "check_digest_auth",
    "compile_digest_response",
    "ha1",
    "ha2",
    "hex_digest",
    "next_stale_after",
    "parse_header_values",

    "parse_basic_auth",
    "parse_bearer_token",
]
