"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered request reads, response
writes, streamed chunk writes, and a clean TCP close.

=============================================================================
READING: TCP HAS NO MESSAGE BOUNDARIES
=============================================================================

    recv() → b"GET /range/30 HT"
    recv() → b"TP/1.1\r\nRange: bytes=10-20\r\n"
    recv() → b"\r\n"                          ← headers complete

Bytes are buffered until CRLF CRLF is seen, then Content-Length more
bytes are read. Anything after that belongs to the next (pipelined)
request and stays in the buffer.

=============================================================================
WRITING: BUFFERED VS STREAMED
=============================================================================

    send_response(bytes)    one sendall(), for a complete response
    send_chunk(bytes)       one sendall() per chunk of a streamed body

A peer that disconnects in the middle of a paced /range body is noticed
on the next chunk write: send_chunk() returns False, marks the
connection broken, and every later write fails immediately without
touching the socket.

=============================================================================
STATES
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
     │         │                          │            ▲        │
     │         │                          │            └────────┘
     ▼         ▼                          ▼
     └──────► CLOSING ◄───────────────────┘
                 │
                 ▼
              CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle states of a client connection."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short random id used to tag log lines.
        state: Current ConnectionState.
        tls: Whether the socket speaks TLS (stamped onto requests).
        requests_handled: Requests read so far on this connection.
        broken: Set once a write has failed; the peer is gone.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0
    tls: bool = False
    broken: bool = False

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        The first request gets the full socket timeout; later requests on
        a kept-alive connection get keep_alive_timeout, and running out
        of it just means the client is done.

        Returns:
            The request bytes, or None if the peer closed the connection
            (or went idle between kept-alive requests).

        Raises:
            TimeoutError: The first request never arrived in full.
            ValueError: The request grew past max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        """recv() that reports an abrupt disconnect as end of stream."""
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Content-Length from raw header bytes, 0 if absent or invalid.

        Runs before the request is parsed, so it scans lines directly.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a complete response (or a streamed response's head).

        Returns:
            True if every byte was handed to the kernel.
        """
        self.state = ConnectionState.WRITING
        return self._sendall(data)

    def send_chunk(self, data: bytes) -> bool:
        """
        Send one chunk of a streamed body.

        Returns:
            False once the peer is gone; the socket is not touched again.
        """
        if self.broken:
            return False
        return self._sendall(data)

    def _sendall(self, data: bytes) -> bool:
        self.last_activity = time.time()
        try:
            self.socket.sendall(data)
        except (ConnectionResetError, BrokenPipeError, socket.timeout, OSError) as e:
            self.broken = True
            logger.info(f"[{self.id}] Send failed: {e}")
            return False
        self.last_activity = time.time()
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close gracefully: send FIN, drain what the peer still sends,
        release the descriptor. Safe to call twice.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        if not self.broken:
            try:
                self.socket.settimeout(0.5)
                while self.socket.recv(1024):
                    pass
            except (socket.timeout, OSError):
                pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        """Ready for the next request on this connection."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
