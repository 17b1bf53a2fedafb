"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

One dataclass holding every tunable of the server and its probe endpoints.

=============================================================================
WHERE VALUES COME FROM
=============================================================================

    Priority (highest to lowest):

    1. Command-line arguments     python -m httpprobe --port 3000
    2. Environment variables      HTTPPROBE_PORT=3000 python -m httpprobe
    3. Defaults in ServerConfig

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the probe server.

    =========================================================================
    GROUPS
    =========================================================================

    NETWORK      host, port, backlog, buffer_size, timeout
    HTTP         keep_alive, keep_alive_timeout, max_request_size
    THREADING    min_workers, max_workers
    LOGGING      log_level, log_format
    IDENTITY     server_name
    PROBES       auth_realm, max_range_bytes, default_chunk_size

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" for all interfaces."""

    port: int = 8080
    """0 lets the OS pick a free port (see HTTPServer.address)."""

    backlog: int = 128
    """Queued connections before the kernel starts refusing."""

    buffer_size: int = 8192
    """Bytes per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds, None to block forever.

    Also bounds how long a paced /range response may stall on a slow
    reader before the write fails.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_request_size: int = 10 * 1024 * 1024
    """Requests larger than this get 413."""

    # ─────────────────────────────────────────────────────────────────────
    # THREADING
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4

    max_workers: int = 16
    """
    Upper bound on concurrent connections. A paced /range stream holds
    its worker for the whole duration.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "httpprobe/1.0"

    # ─────────────────────────────────────────────────────────────────────
    # PROBE ENDPOINTS
    # ─────────────────────────────────────────────────────────────────────

    auth_realm: str = "httpprobe"
    """Realm announced in Digest and Basic challenges."""

    max_range_bytes: int = 100 * 1024
    """Largest numbytes /range will serve; above it answers 404."""

    default_chunk_size: int = 10 * 1024
    """Bytes per write for /range when chunk_size is not given."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a configuration from HTTPPROBE_* environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

            HTTPPROBE_HOST           bind address        (127.0.0.1)
            HTTPPROBE_PORT           port                (8080)
            HTTPPROBE_WORKERS        max worker threads  (16)
            HTTPPROBE_TIMEOUT        socket timeout, s   (30)
            HTTPPROBE_LOG_LEVEL      logging level       (INFO)
            HTTPPROBE_LOG_FORMAT     text | json         (text)
            HTTPPROBE_REALM          auth realm          (httpprobe)
            HTTPPROBE_MAX_RANGE      max /range size     (102400)

        =====================================================================
        """
        defaults = cls()
        return cls(
            host=os.getenv("HTTPPROBE_HOST", defaults.host),
            port=int(os.getenv("HTTPPROBE_PORT", str(defaults.port))),
            max_workers=int(os.getenv("HTTPPROBE_WORKERS", str(defaults.max_workers))),
            timeout=float(os.getenv("HTTPPROBE_TIMEOUT", str(defaults.timeout))),
            log_level=os.getenv("HTTPPROBE_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("HTTPPROBE_LOG_FORMAT", defaults.log_format),
            auth_realm=os.getenv("HTTPPROBE_REALM", defaults.auth_realm),
            max_range_bytes=int(os.getenv("HTTPPROBE_MAX_RANGE", str(defaults.max_range_bytes))),
        )

    def validate(self) -> None:
        """
        Check values at startup, before anything binds.

        Raises:
            ValueError: Naming the first bad setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")

        if not self.auth_realm:
            raise ValueError("auth_realm must not be empty")

        if self.max_range_bytes < 0:
            raise ValueError("max_range_bytes must be >= 0")

        if self.default_chunk_size < 1:
            raise ValueError("default_chunk_size must be >= 1")
