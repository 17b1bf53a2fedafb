"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together: sockets, worker threads, parsing, middleware,
routing, and response delivery (buffered or paced).

=============================================================================
ARCHITECTURE
=============================================================================

                         ┌─────────────────┐
                         │   HTTPServer    │
                         └────────┬────────┘
             ┌────────────────────┼────────────────────┐
             ▼                    ▼                    ▼
     ┌──────────────┐     ┌──────────────┐     ┌──────────────┐
     │ SocketServer │     │  ThreadPool  │     │    Router    │
     │ accept loop  │     │   workers    │     │ probe routes │
     └──────┬───────┘     └──────┬───────┘     └──────┬───────┘
            ▼                    ▼                    ▼
     ┌──────────────┐     ┌──────────────┐     ┌──────────────┐
     │  Connection  │────►│ keep-alive   │────►│  Middleware  │
     │              │     │    loop      │     │  + handlers  │
     └──────────────┘     └──────────────┘     └──────────────┘

=============================================================================
ONE REQUEST, START TO FINISH
=============================================================================

    1. SocketServer accepts, wraps the socket in a Connection
    2. Connection is queued on the ThreadPool (full queue → 503)
    3. Worker reads a request and parses it (errors → 400/405/413/505)
    4. Middleware → Router → handler returns an HTTPResponse
       (a handler exception becomes a 500)
    5. Delivery:
          buffered    head + body in one write
          streamed    head, then each chunk paced by its delay
    6. Keep-alive: loop to 3, or close

=============================================================================
PACED DELIVERY
=============================================================================

    send head ─► write chunk ─► sleep ─► ... ─► sleep ─► write last partial chunk
                     │
                     └─ write fails (client went away)
                            → stop the chunk generator
                            → close the connection, nothing more is sent

A full chunk's delay follows it, so the first bytes reach the client
immediately. A trailing partial chunk (``delay_first``) sleeps before it
is written, so the last byte arrives after the whole pacing budget.

=============================================================================
"""

import logging
import time
from typing import Optional, Callable, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, ResponseBuilder, HTTPStatus,
    Router, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded HTTP/1.1 server.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(config, router=create_app(config))
        server.use(LoggingMiddleware(log_format=config.log_format))
        server.run()                      # blocks until SIGINT/SIGTERM

    From another thread (tests):

        thread = threading.Thread(target=server.run, kwargs={"banner": False})
        thread.start()
        server.ready.wait(5)
        host, port = server.address
        ...
        server.shutdown()
        thread.join()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        """
        Args:
            config: Server configuration; validated here.
            router: Routes to serve. An empty Router answers 404 to everything.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )

        self._router = router or Router()
        self._middleware = MiddlewarePipeline()

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; the first added is the outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def ready(self):
        """threading.Event set once the listening socket is bound."""
        return self._socket_server.ready

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); resolves port 0 once ready."""
        return self._socket_server.address

    @property
    def thread_pool(self) -> ThreadPool:
        return self._thread_pool

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, banner: bool = True):
        """
        Serve until shutdown() is called or the process is signalled.

        Args:
            banner: Print the startup banner and route table to stdout.
        """
        self._running = True
        self._setup_logging()

        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()

        on_ready = self._print_startup_banner if banner else None
        try:
            self._socket_server.start(self._handle_connection, on_ready=on_ready)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask the server to stop. Returns immediately; run() does the cleanup."""
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  {self.config.server_name} listening on http://{host}:{port}")
        print(f"  workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        for route in self._router.routes():
            print(f"  {route.method or '*':6} {route.path}")
        print()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("httpprobe").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout or 30.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Called on the accept thread: hand the connection to a worker."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """The keep-alive loop for one connection (runs on a worker)."""
        parser = RequestParser(
            max_request_size=self.config.max_request_size,
            tls=conn.tls,
        )

        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        self._send_error(conn, HTTPStatus(e.status_code), str(e))
                        break

                    conn.state = ConnectionState.PROCESSING

                    try:
                        response = self._handler(request)
                    except Exception as e:
                        logger.exception(f"[{conn.id}] Handler error: {e}")
                        response = internal_error()

                    keep_alive = request.is_keep_alive and self.config.keep_alive
                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive",
                            f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if not self._deliver(conn, response):
                        break

                    if not keep_alive or response.headers.get("Connection") == "close":
                        break

                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                except ValueError as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, "Request too large")
                    break

                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _deliver(self, conn: Connection, response: HTTPResponse) -> bool:
        """
        Write a response. Returns False once the connection is unusable.
        """
        if not response.is_streaming:
            return conn.send_response(response.to_bytes(self.config.server_name))

        if not conn.send_response(response.head_bytes(self.config.server_name)):
            return False

        chunks = iter(response.stream)
        try:
            for chunk in chunks:
                delay_first = getattr(chunk, "delay_first", False)
                if delay_first and chunk.delay > 0:
                    time.sleep(chunk.delay)
                if not conn.send_chunk(chunk.data):
                    logger.info(f"[{conn.id}] Client went away mid-stream, abandoning body")
                    return False
                if not delay_first and chunk.delay > 0:
                    time.sleep(chunk.delay)
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()

        return True

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Errors raised before a handler ran; always closes the connection."""
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message})
            .close_connection()
            .build())

        conn.send_response(response.to_bytes(self.config.server_name))
