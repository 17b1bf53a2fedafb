"""
Basic (RFC 7617) and Bearer (RFC 6750) Authorization header parsing.

    Authorization: Basic YWxpY2U6czNjcmV0     → ("alice", "s3cret")
    Authorization: Bearer abc.def.ghi        → "abc.def.ghi"
"""

import base64
import binascii
from typing import Optional, Tuple


BEARER_PREFIX = "Bearer "


def parse_basic_auth(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Decode Basic credentials.

    The scheme is case-insensitive. The decoded payload is split on the
    first ":", so passwords may contain colons but user names may not.

    Returns:
        (user, password), or None if the header is missing or malformed.
    """
    if not header:
        return None

    scheme, sep, payload = header.strip().partition(" ")
    if not sep or scheme.lower() != "basic":
        return None

    try:
        decoded = base64.b64decode(payload.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None

    user, sep, password = decoded.partition(":")
    if not sep:
        return None
    return user, password


def parse_bearer_token(header: Optional[str]) -> Optional[str]:
    """
    Token from a ``Bearer <token>`` header, or None.

    The prefix match is exact (``Bearer`` followed by one space). An empty
    token after the prefix is still a token.
    """
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX):]
