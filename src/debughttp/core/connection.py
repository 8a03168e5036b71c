"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket for the single request it will carry.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Lifecycle                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept() ──► NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSED │
    │                           │                                    ▲     │
    │                           └── timeout / EOF / size limit ──────┘     │
    │                               (whatever was read is returned)        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The connection is a context manager and owns its socket: leaving the
`with` block closes it, whatever happened inside.

    with Connection(sock, address, read_timeout=5.0) as conn:
        data = conn.read_request()
        ...
        conn.send_all(response.to_bytes())

=============================================================================
BOUNDED READ, PATIENT WRITE
=============================================================================

Reading has one overall deadline (read_timeout) and a byte cap
(max_request_size). A client that trickles bytes cannot hold the listener
longer than the deadline.

Writing is not time-bounded. The socket is switched to non-blocking and a
send that would block is retried after a 1 ms sleep until every byte is
out or the socket reports a hard error.

=============================================================================
"""

import re
import select
import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field


logger = logging.getLogger(__name__)

DRAIN_TIMEOUT = 0.1     # seconds spent discarding unread client data on close

_CONTENT_LENGTH_PATTERN = re.compile(rb"^[ \t]*content-length[ \t]*:[ \t]*(\S*)", re.IGNORECASE | re.MULTILINE)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSING = "closing"
    CLOSED = "closed"


def message_complete(data: bytes) -> bool:
    """
    Check whether data holds a whole request.

    Complete means the header block has ended (CRLF CRLF, or LF LF) and,
    if Content-Length is present, that many body bytes have arrived. An
    unreadable Content-Length counts as complete; the parser rejects it.
    Like the parser, the last Content-Length line wins.
    """
    for separator in (b"\r\n\r\n", b"\n\n"):
        header_end = data.find(separator)
        if header_end != -1:
            break
    else:
        return False

    values = _CONTENT_LENGTH_PATTERN.findall(data[:header_end])
    if not values:
        return True
    try:
        length = int(values[-1])
    except ValueError:
        return True
    return len(data) - (header_end + len(separator)) >= length


@dataclass
class Connection:
    """
    One accepted client connection.

    Attributes:
        socket: The client socket (owned; closed by close()).
        address: Client's (ip, port).
        id: Short identifier for log lines.
        state: Current ConnectionState.
        bytes_read / bytes_sent: Traffic counters for the access log.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)

    buffer_size: int = 4096
    read_timeout: float = 5.0
    max_request_size: int = 64 * 1024

    bytes_read: int = 0
    bytes_sent: int = 0

    def __post_init__(self):
        self.socket.setblocking(True)

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        """Seconds since accept."""
        return time.monotonic() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Read one request.

        Stops at the first of: a complete message, end of stream, the read
        deadline, or max_request_size bytes.

        Returns:
            The bytes read, possibly b"" if the client sent nothing.
        """
        self.state = ConnectionState.READING
        deadline = time.monotonic() + self.read_timeout
        buffer = bytearray()

        while len(buffer) < self.max_request_size:
            if message_complete(buffer):
                break

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.debug(f"[{self.id}] Read timeout after {len(buffer)} bytes")
                break

            try:
                readable, _, _ = select.select([self.socket], [], [], remaining)
            except (OSError, ValueError):
                break
            if not readable:
                logger.debug(f"[{self.id}] Read timeout after {len(buffer)} bytes")
                break

            chunk = self._recv(min(self.buffer_size, self.max_request_size - len(buffer)))
            if not chunk:
                break
            buffer += chunk

        if len(buffer) >= self.max_request_size and not message_complete(buffer):
            logger.warning(
                f"[{self.id}] Request from {self.client_ip} exceeds "
                f"{self.max_request_size} bytes, truncated"
            )

        self.bytes_read = len(buffer)
        self.state = ConnectionState.PROCESSING
        return bytes(buffer)

    def _recv(self, size: int) -> bytes:
        """recv() that reports a reset peer as end of stream."""
        try:
            return self.socket.recv(size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        except OSError as e:
            logger.debug(f"[{self.id}] recv failed: {e}")
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_all(self, data: bytes) -> bool:
        """
        Write every byte of data.

        Returns:
            True once everything is sent, False on a hard socket error.
        """
        self.state = ConnectionState.WRITING
        view = memoryview(data)

        try:
            self.socket.setblocking(False)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        while view:
            try:
                sent = self.socket.send(view)
            except (BlockingIOError, InterruptedError):
                time.sleep(0.001)
                continue
            except OSError as e:
                logger.warning(f"[{self.id}] Send failed: {e}")
                return False
            if sent == 0:
                logger.warning(f"[{self.id}] Send failed: connection closed")
                return False
            self.bytes_sent += sent
            view = view[sent:]

        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close the connection. Safe to call more than once.

        Half-close first so the client sees end of response, drain what
        it still sends for a moment, then release the socket.
        """
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(DRAIN_TIMEOUT)
            drain_until = time.monotonic() + DRAIN_TIMEOUT
            while time.monotonic() < drain_until and self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
