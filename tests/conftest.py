"""
pytest configuration and fixtures.
"""

import http.client
import re
import threading
from typing import Dict, Generator, Optional, Tuple

import pytest

from httpprobe import ServerConfig, create_app, create_server
from httpprobe.auth.digest import DigestAlgorithm, ha1, ha2, hex_digest
from httpprobe.http import HTTPRequest, HTTPResponse, RequestParser, Router


CLIENT_ADDRESS = ("127.0.0.1", 50000)

_CHALLENGE_PARAM = re.compile(r'(\w+)="?([^",\s]*)"?')


def build_raw_request(
    target: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> bytes:
    lines = [f"{method} {target} HTTP/1.1", "Host: localhost"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    if body:
        lines.append(f"Content-Length: {len(body)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + body


def make_request(
    target: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    tls: bool = False,
    client_address: Tuple[str, int] = CLIENT_ADDRESS,
) -> HTTPRequest:
    """An HTTPRequest parsed from a real request line and headers."""
    parser = RequestParser(tls=tls)
    return parser.parse(build_raw_request(target, method, headers), client_address)


def parse_challenge(header: str) -> Dict[str, str]:
    """Split a WWW-Authenticate Digest value into its parameters."""
    assert header.startswith("Digest ")
    return dict(_CHALLENGE_PARAM.findall(header[len("Digest "):]))


def digest_authorization(
    challenge: Dict[str, str],
    username: str,
    password: str,
    uri: str,
    method: str = "GET",
    qop: Optional[str] = "auth",
    nc: str = "00000001",
    cnonce: str = "0a4f113b",
    algorithm: Optional[str] = None,
) -> str:
    """What a well-behaved Digest client sends in reply to ``challenge``."""
    algorithm_name = algorithm or challenge.get("algorithm", "MD5")
    hash_algorithm = DigestAlgorithm.from_name(algorithm_name)
    realm = challenge["realm"]
    nonce = challenge["nonce"]

    a1 = ha1(realm, username, password, hash_algorithm)
    a2 = ha2(method, uri, hash_algorithm)
    if qop:
        response = hex_digest(f"{a1}:{nonce}:{nc}:{cnonce}:{qop}:{a2}", hash_algorithm)
    else:
        response = hex_digest(f"{a1}:{nonce}:{a2}", hash_algorithm)

    parts = [
        f'username="{username}"',
        f'realm="{realm}"',
        f'nonce="{nonce}"',
        f'uri="{uri}"',
        f'algorithm={algorithm_name}',
        f'response="{response}"',
        f'opaque="{challenge.get("opaque", "")}"',
    ]
    if qop:
        parts += [f"qop={qop}", f"nc={nc}", f'cnonce="{cnonce}"']
    return "Digest " + ", ".join(parts)


def set_cookie_map(response: HTTPResponse) -> Dict[str, str]:
    """Cookie name → value from a response's Set-Cookie lines (last wins)."""
    cookies = {}
    for line in response.cookies:
        pair = line.split(";", 1)[0]
        name, _, value = pair.partition("=")
        cookies[name] = value
    return cookies


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration; port 0 lets the OS choose."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=8,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def app(config: ServerConfig) -> Router:
    return create_app(config)


@pytest.fixture
def call(app: Router):
    """Dispatch a request through the probe routes without a socket."""
    def _call(
        target: str,
        headers: Optional[Dict[str, str]] = None,
        method: str = "GET",
        tls: bool = False,
    ) -> HTTPResponse:
        return app.handle(make_request(target, method, headers, tls=tls))
    return _call


class LiveServer:
    """A probe server running on a background thread."""

    def __init__(self, config: ServerConfig):
        self.server = create_server(config)
        self._thread: Optional[threading.Thread] = None

    @property
    def host(self) -> str:
        return self.server.address[0]

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"banner": False},
            daemon=True,
        )
        self._thread.start()
        if not self.server.ready.wait(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def connection(self, timeout: float = 5.0) -> http.client.HTTPConnection:
        return http.client.HTTPConnection(self.host, self.port, timeout=timeout)


@pytest.fixture
def live_server(config: ServerConfig) -> Generator[LiveServer, None, None]:
    server = LiveServer(config)
    server.start()
    yield server
    server.stop()
