"""
=============================================================================
SOCKET SERVER
=============================================================================

The TCP layer: bind, listen, accept, and hand each client socket (wrapped
in a Connection) to a callback. Knows nothing about HTTP.

=============================================================================
LIFECYCLE
=============================================================================

    start(handler)
        │
        ├──► socket()  SO_REUSEADDR, TCP_NODELAY, 1s accept timeout
        ├──► bind() / listen()
        ├──► signal handlers (main thread only)
        ├──► ready.set()
        │
        └──► accept loop ──► Connection(...) ──► handler(conn)
                 │
                 │   accept() times out every second so the loop can
                 │   notice shutdown() without a wake-up socket
                 ▼
    shutdown()  ──► loop exits ──► signals restored, socket closed

=============================================================================
SIGNALS AND THREADS
=============================================================================

signal.signal() may only be called from the main thread. When the server
runs on a background thread (the test suite does this) SIGINT/SIGTERM
stay with whoever owns the main thread, and shutdown() is called
directly instead.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP server.

    Usage:
        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._original_handlers: dict = {}

        self.ready = threading.Event()
        """Set once the socket is listening."""

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the configured one before start()."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """
        A TCP socket configured for serving.

            SO_REUSEADDR   rebind immediately after a restart (TIME_WAIT)
            TCP_NODELAY    no Nagle delay between a chunk write and the
                           pause that follows it
            timeout 1.0    accept() wakes up to check the running flag
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """Route SIGTERM and SIGINT to shutdown(), from the main thread only."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, leaving signal handlers alone")
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(
        self,
        connection_handler: Callable[[Connection], None],
        on_ready: Optional[Callable[[], None]] = None,
    ):
        """
        Bind, listen and accept until shutdown() is called.

        Args:
            connection_handler: Called with every accepted Connection.
                                Must return quickly; the HTTP server
                                hands the connection to its thread pool.
            on_ready: Called once, right after the socket starts listening.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        self._running = True
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self.ready.set()
        if on_ready is not None:
            on_ready()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting. Idempotent, callable from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self.ready.clear()
        logger.info("Socket server stopped")
