"""
=============================================================================
HTTP DIGEST AUTHENTICATION (RFC 7616 / RFC 2617)
=============================================================================

Hashing, credential parsing, verification and challenge minting for the
``/digest-auth`` endpoints. Everything here is a pure function of its
arguments; the endpoint's "session" lives in client cookies (see
handlers.auth).

=============================================================================
THE EXCHANGE
=============================================================================

    CLIENT                                                 SERVER
      │  GET /digest-auth/auth/alice/s3cret                   │
      │  ───────────────────────────────────────────────────► │
      │                                                       │
      │  401 WWW-Authenticate: Digest qop=auth, realm=...,    │
      │      algorithm=MD5, nonce=<n>, opaque=<o> stale=false │
      │  ◄─────────────────────────────────────────────────── │
      │                                                       │
      │  GET /digest-auth/auth/alice/s3cret                   │
      │  Authorization: Digest username="alice", realm=...,   │
      │      nonce="<n>", uri="/digest-auth/...",             │
      │      qop=auth, nc=00000001, cnonce="<c>",             │
      │      response="<r>"                                   │
      │  ───────────────────────────────────────────────────► │
      │                                                       │
      │  200 {"authenticated": true, "user": "alice"}         │
      │  ◄─────────────────────────────────────────────────── │

=============================================================================
THE RESPONSE HASH
=============================================================================

    HA1 = H(username ":" realm ":" password)
    HA2 = H(method ":" uri)

    qop = auth | auth-int:
        response = H(HA1 ":" nonce ":" nc ":" cnonce ":" qop ":" HA2)
    otherwise (RFC 2069 compatibility):
        response = H(HA1 ":" nonce ":" HA2)

H is MD5, SHA-256 or SHA-512, hex encoded. The algorithm used to verify
is the one the client names in its Authorization header.

=============================================================================
"""

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class DigestParseError(ValueError):
    """An Authorization header that cannot be used for Digest auth."""


class DigestAlgorithm(Enum):
    """
    Supported hash algorithms, by their RFC 7616 names.

    Unknown names never fail; they fall back to MD5:

        >>> DigestAlgorithm.from_name("SHA-256")
        <DigestAlgorithm.SHA256: 'SHA-256'>
        >>> DigestAlgorithm.from_name("SHA-1")
        <DigestAlgorithm.MD5: 'MD5'>
    """

    MD5 = "MD5"
    SHA256 = "SHA-256"
    SHA512 = "SHA-512"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "DigestAlgorithm":
        for algorithm in cls:
            if algorithm.value == name:
                return algorithm
        return cls.MD5

    @property
    def hashlib_name(self) -> str:
        return _HASHLIB_NAMES[self]


_HASHLIB_NAMES = {
    DigestAlgorithm.MD5: "md5",
    DigestAlgorithm.SHA256: "sha256",
    DigestAlgorithm.SHA512: "sha512",
}

REQUIRED_FIELDS = ("username", "realm", "nonce", "uri", "response")

NONCE_RANDOM_BYTES = 10
OPAQUE_RANDOM_BYTES = 10

DEFAULT_QOP = "auth"


# =============================================================================
# HASHING
# =============================================================================

def hex_digest(data: bytes, algorithm: DigestAlgorithm = DigestAlgorithm.MD5) -> str:
    """Hex digest of ``data`` under ``algorithm``."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.new(algorithm.hashlib_name, data).hexdigest()


def ha1(realm: str, username: str, password: str,
        algorithm: DigestAlgorithm = DigestAlgorithm.MD5) -> str:
    """``H(username:realm:password)``"""
    return hex_digest(f"{username}:{realm}:{password}".encode("utf-8"), algorithm)


def ha2(method: str, uri: str, algorithm: DigestAlgorithm = DigestAlgorithm.MD5) -> str:
    """``H(method:uri)``"""
    return hex_digest(f"{method}:{uri}".encode("utf-8"), algorithm)


# =============================================================================
# CREDENTIALS
# =============================================================================

def parse_header_values(value: str) -> Dict[str, str]:
    """
    Parse the comma-separated ``key=value`` list of a Digest header.

        'username="alice", nc=00000001'  →  {"username": "alice", "nc": "00000001"}

    Keys and values are stripped and double quotes around values are
    removed. Order does not matter; a repeated key keeps its last value.

    Raises:
        DigestParseError: If a non-empty part has no "=".
    """
    values: Dict[str, str] = {}
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, item = part.partition("=")
        if not sep:
            raise DigestParseError(f"Malformed Digest parameter: {part!r}")
        values[key.strip()] = item.strip().strip('"')
    return values


@dataclass(frozen=True)
class DigestCredentials:
    """
    The fields of a Digest ``Authorization`` header.

    Only constructed through parse(), which guarantees that every
    required field is present and that ``qop`` never appears without
    ``nc`` and ``cnonce``.
    """

    username: str
    realm: str
    nonce: str
    uri: str
    response: str
    qop: Optional[str] = None
    nc: Optional[str] = None
    cnonce: Optional[str] = None
    algorithm: Optional[str] = None

    @property
    def hash_algorithm(self) -> DigestAlgorithm:
        """Algorithm the client used; MD5 when absent or unknown."""
        return DigestAlgorithm.from_name(self.algorithm)

    @classmethod
    def parse(cls, header: Optional[str]) -> "DigestCredentials":
        """
        Parse an ``Authorization`` header value.

        =====================================================================
        REJECTED INPUT
        =====================================================================

            None / ""                         missing header
            "Digest"                          no parameters after the scheme
            "Basic dXNlcjpwYXNz"              wrong scheme
            'Digest username="a", junk'       part without "="
            'Digest username="a"'             required field missing
            'Digest ..., qop=auth'            qop without nc and cnonce

        The scheme name is case-insensitive.
        =====================================================================

        Raises:
            DigestParseError: For any of the above.
        """
        if not header:
            raise DigestParseError("Missing Authorization header")

        scheme, sep, params = header.strip().partition(" ")
        if not sep or not params.strip():
            raise DigestParseError("Authorization header has no credentials")
        if scheme.lower() != "digest":
            raise DigestParseError(f"Unsupported authorization scheme: {scheme}")

        values = parse_header_values(params)

        for name in REQUIRED_FIELDS:
            if name not in values:
                raise DigestParseError(f"Missing required credential: {name}")

        if "qop" in values and ("nc" not in values or "cnonce" not in values):
            raise DigestParseError("qop requires nc and cnonce")

        return cls(
            username=values["username"],
            realm=values["realm"],
            nonce=values["nonce"],
            uri=values["uri"],
            response=values["response"],
            qop=values.get("qop"),
            nc=values.get("nc"),
            cnonce=values.get("cnonce"),
            algorithm=values.get("algorithm"),
        )


# =============================================================================
# VERIFICATION
# =============================================================================

def compile_digest_response(
    credentials: DigestCredentials,
    password: str,
    method: str,
    uri: str,
) -> str:
    """
    The response hash a client holding ``password`` would have sent.

    The realm comes from the credentials, so a client answering for a
    different realm than the one challenged simply fails to match.
    """
    algorithm = credentials.hash_algorithm

    ha1_value = ha1(credentials.realm, credentials.username, password, algorithm)
    ha2_value = ha2(method, uri, algorithm)

    if credentials.qop in ("auth", "auth-int"):
        data = ":".join([
            ha1_value,
            credentials.nonce,
            credentials.nc or "",
            credentials.cnonce or "",
            credentials.qop,
            ha2_value,
        ])
    else:
        data = f"{ha1_value}:{credentials.nonce}:{ha2_value}"

    return hex_digest(data.encode("utf-8"), algorithm)


def check_digest_auth(
    credentials: Optional[DigestCredentials],
    username: str,
    password: str,
    method: str,
    uri: str,
) -> bool:
    """
    Verify credentials against the expected user and password.

    Args:
        credentials: Parsed credentials, or None
        username: Expected username
        password: Expected password
        method: Request method
        uri: Request-target as sent on the request line

    Returns:
        True when the client's response hash matches.
    """
    if credentials is None or credentials.username != username:
        return False

    expected = compile_digest_response(credentials, password, method, uri)
    return hmac.compare_digest(
        expected.encode("utf-8"),
        credentials.response.encode("utf-8"),
    )


# =============================================================================
# CHALLENGES
# =============================================================================

def make_nonce(remote_addr: str, algorithm: DigestAlgorithm) -> str:
    """``H(remote_addr:unix_time:<10 random bytes>)``"""
    data = (
        f"{remote_addr}:{int(time.time())}:".encode("utf-8")
        + secrets.token_bytes(NONCE_RANDOM_BYTES)
    )
    return hex_digest(data, algorithm)


def make_opaque(algorithm: DigestAlgorithm) -> str:
    return hex_digest(secrets.token_bytes(OPAQUE_RANDOM_BYTES), algorithm)


def build_challenge(
    remote_addr: str,
    realm: str,
    qop: Optional[str],
    algorithm: DigestAlgorithm,
    stale: bool,
) -> str:
    """
    A ``WWW-Authenticate`` value with a fresh nonce and opaque.

        Digest qop=auth, realm=httpprobe, algorithm=MD5, nonce=..., opaque=... stale=false

    Parameter values are unquoted and there is no comma before
    ``stale``; clients written against this service parse exactly
    that form, so it is kept as is.
    """
    nonce = make_nonce(remote_addr, algorithm)
    opaque = make_opaque(algorithm)

    return (
        f"Digest qop={qop or DEFAULT_QOP}, realm={realm}, "
        f"algorithm={algorithm.value}, nonce={nonce}, "
        f"opaque={opaque} stale={'true' if stale else 'false'}"
    )


def next_stale_after(value: str) -> str:
    """
    Count a ``stale_after`` cookie down by one.

        "3" → "2",  "0" → "-1",  "never" → "never",  "x" → "never"
    """
    try:
        return str(int(value) - 1)
    except ValueError:
        return "never"
