"""
=============================================================================
AUTH PROBE HANDLERS
=============================================================================

Endpoints that make a client authenticate, so the client's auth support
can be exercised against a known-good server.

    ┌──────────────────────────────────────────────────┬──────────────────┐
    │ Route                                            │ On failure       │
    ├──────────────────────────────────────────────────┼──────────────────┤
    │ /digest-auth/:qop/:user/:passwd                  │ 401 / 403        │
    │ /digest-auth/:qop/:user/:passwd/:algorithm       │ 401 / 403        │
    │ /digest-auth/:qop/:user/:passwd/:algorithm/      │ 401 / 403        │
    │     :stale_after                                 │                  │
    │ /basic-auth/:user/:passwd                        │ 401              │
    │ /hidden-basic-auth/:user/:passwd                 │ 404              │
    │ /bearer                                          │ 401              │
    └──────────────────────────────────────────────────┴──────────────────┘

=============================================================================
DIGEST STATE LIVES IN COOKIES
=============================================================================

The server keeps nothing between requests. What little state the digest
endpoint needs travels with the client:

    ┌─────────────┬──────────────────────────────────────────────────────┐
    │ Cookie      │ Meaning                                              │
    ├─────────────┼──────────────────────────────────────────────────────┤
    │ stale_after │ Successful logins left before the next challenge is │
    │             │ marked stale ("never", or a countdown)              │
    │ fake        │ Must come back as "fake_value" when the client is   │
    │             │ asked to prove it keeps cookies (?require-cookie=1) │
    │ last_nonce  │ Nonce of the last rejected attempt; reusing it is   │
    │             │ answered with stale=true                            │
    └─────────────┴──────────────────────────────────────────────────────┘

    GET /digest-auth/auth/alice/pw/MD5/2
        401 stale=false        Set-Cookie: stale_after=2
    (retry with credentials)
        200                    Set-Cookie: stale_after=1
    (next request)
        200                    Set-Cookie: stale_after=0
    (next request)
        401 stale=true         Set-Cookie: stale_after=2

=============================================================================
"""

import logging
from typing import Optional

from ..auth.basic import parse_basic_auth, parse_bearer_token
from ..auth.digest import (
    DigestAlgorithm,
    DigestCredentials,
    DigestParseError,
    build_challenge,
    check_digest_auth,
    next_stale_after,
)
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, json_error
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

DEFAULT_REALM = "httpprobe"

STALE_AFTER_COOKIE = "stale_after"
FAKE_COOKIE = "fake"
FAKE_COOKIE_VALUE = "fake_value"
LAST_NONCE_COOKIE = "last_nonce"

REQUIRE_COOKIE_PARAM = "require-cookie"
_TRUTHY = ("true", "1", "t")


class DigestAuthHandler:
    """
    ``/digest-auth/:qop/:user/:passwd[/:algorithm[/:stale_after]]``

    =========================================================================
    DECISION LIST (first match wins)
    =========================================================================

        1. Read ?require-cookie and whether cookies must be Secure.

        2. Authorization unparseable,
           or require-cookie and no Cookie header at all
               → 401, fresh challenge
                 Set-Cookie: stale_after, fake

        3. require-cookie and fake cookie != "fake_value"
               → 403 {"error": "missing cookie set on challenge"}
                 Set-Cookie: fake

        4. nonce == last_nonce cookie (non-empty),
           or stale_after cookie == "0"
               → 401, stale challenge
                 Set-Cookie: stale_after, fake, last_nonce

        5. response hash doesn't verify
               → 401, fresh challenge
                 Set-Cookie: stale_after, fake, last_nonce

        6. success
               → 200 {"authenticated": true, "user": ...}
                 Set-Cookie: stale_after (counted down, only if sent), fake

    =========================================================================
    WHICH ALGORITHM
    =========================================================================

    The ``:algorithm`` path segment only decides what new challenges ask
    for. Verification uses whatever algorithm the client names in its
    Authorization header, so a client that ignores the challenge's
    algorithm but hashes consistently still succeeds.

    The URI hashed into HA2 is the request-target exactly as it appeared
    on the request line, query string included.
    =========================================================================
    """

    def __init__(self, realm: str = DEFAULT_REALM):
        self.realm = realm

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        params = request.path_params
        user = params.get("user", "")
        passwd = params.get("passwd", "")
        qop = params.get("qop", "")
        algorithm = DigestAlgorithm.from_name(params.get("algorithm"))
        stale_after = params.get("stale_after") or "never"

        require_cookie = (request.get_query(REQUIRE_COOKIE_PARAM) or "").lower() in _TRUTHY
        secure = request.scheme == "https"

        try:
            credentials: Optional[DigestCredentials] = DigestCredentials.parse(
                request.get_header("Authorization") or None
            )
        except DigestParseError as e:
            logger.debug(f"Digest challenge for {request.remote_addr}: {e}")
            credentials = None

        if credentials is None or (require_cookie and not request.has_header("Cookie")):
            return (self._challenge(request, qop, algorithm, stale=False)
                .cookie(STALE_AFTER_COOKIE, stale_after, secure)
                .cookie(FAKE_COOKIE, FAKE_COOKIE_VALUE, secure)
                .build())

        if require_cookie and request.get_cookie(FAKE_COOKIE) != FAKE_COOKIE_VALUE:
            logger.debug(f"Digest forbidden for {request.remote_addr}: cookie not returned")
            response = json_error(HTTPStatus.FORBIDDEN, "missing cookie set on challenge")
            return response.set_cookie(FAKE_COOKIE, FAKE_COOKIE_VALUE, secure)

        sent_stale_after = request.get_cookie(STALE_AFTER_COOKIE, "")
        last_nonce = request.get_cookie(LAST_NONCE_COOKIE, "")

        if (last_nonce and credentials.nonce == last_nonce) or sent_stale_after == "0":
            logger.debug(f"Digest stale nonce from {request.remote_addr}")
            return (self._challenge(request, qop, algorithm, stale=True)
                .cookie(STALE_AFTER_COOKIE, stale_after, secure)
                .cookie(FAKE_COOKIE, FAKE_COOKIE_VALUE, secure)
                .cookie(LAST_NONCE_COOKIE, credentials.nonce, secure)
                .build())

        if not check_digest_auth(credentials, user, passwd, request.method, request.target):
            logger.debug(f"Digest verification failed for user {credentials.username!r}")
            return (self._challenge(request, qop, algorithm, stale=False)
                .cookie(STALE_AFTER_COOKIE, stale_after, secure)
                .cookie(FAKE_COOKIE, FAKE_COOKIE_VALUE, secure)
                .cookie(LAST_NONCE_COOKIE, credentials.nonce, secure)
                .build())

        logger.debug(f"Digest authenticated user {user!r}")
        builder = ResponseBuilder().status(HTTPStatus.OK)
        if sent_stale_after:
            builder.cookie(STALE_AFTER_COOKIE, next_stale_after(sent_stale_after), secure)
        return (builder
            .cookie(FAKE_COOKIE, FAKE_COOKIE_VALUE, secure)
            .json({"authenticated": True, "user": user})
            .build())

    def _challenge(
        self,
        request: HTTPRequest,
        qop: str,
        algorithm: DigestAlgorithm,
        stale: bool,
    ) -> ResponseBuilder:
        """401 with a freshly minted challenge; cookies are added by the caller."""
        challenge = build_challenge(request.remote_addr, self.realm, qop, algorithm, stale)
        return (ResponseBuilder()
            .status(HTTPStatus.UNAUTHORIZED)
            .header("WWW-Authenticate", challenge))


class BasicAuthHandler:
    """
    ``/basic-auth/:user/:passwd`` and ``/hidden-basic-auth/:user/:passwd``.

    The hidden variant answers a failed login with 404, so a browser
    never shows its login prompt and the resource looks absent.
    """

    def __init__(
        self,
        realm: str = DEFAULT_REALM,
        failure_status: HTTPStatus = HTTPStatus.UNAUTHORIZED,
    ):
        self.realm = realm
        self.failure_status = failure_status

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        expected = (
            request.path_params.get("user", ""),
            request.path_params.get("passwd", ""),
        )
        credentials = parse_basic_auth(request.get_header("Authorization"))

        if credentials is None or credentials != expected:
            response = json_error(self.failure_status)
            return response.set_header("WWW-Authenticate", f'Basic realm="{self.realm}"')

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"authenticated": True, "user": credentials[0]})
            .build())


def bearer_auth(request: HTTPRequest) -> HTTPResponse:
    """``/bearer``: any ``Bearer <token>`` header is accepted and echoed."""
    token = parse_bearer_token(request.get_header("Authorization"))

    if token is None:
        response = json_error(HTTPStatus.UNAUTHORIZED)
        return response.set_header("WWW-Authenticate", "Bearer")

    return (ResponseBuilder()
        .status(HTTPStatus.OK)
        .json({"authenticated": True, "token": token})
        .build())
