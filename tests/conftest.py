"""
pytest configuration and fixtures.
"""

import socket
from dataclasses import dataclass, field
from typing import Callable, Dict, Generator, List
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from debughttp.config import ListenerConfig
from debughttp.core.listener import Handler, Listener


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/cpu?format=hex&page=2 HTTP/1.1\r\n"
        b"Host: localhost:65503\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a JSON body."""
    body = b'{"address": "C600", "length": 16}'
    return (
        b"POST /api/memory HTTP/1.1\r\n"
        b"Host: localhost:65504\r\n"
        b"Content-Type: application/json; charset=utf-8\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# =============================================================================
# RAW HTTP CLIENT
# =============================================================================

@dataclass
class RawResponse:
    """A response read straight off the socket."""

    status: int
    reason: str
    headers: Dict[str, str] = field(default_factory=dict)
    header_lines: List[str] = field(default_factory=list)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


class RawClient:
    """Minimal blocking HTTP client: send bytes, read until the server closes."""

    def __init__(self, host: str = "127.0.0.1", timeout: float = 5.0):
        self.host = host
        self.timeout = timeout

    def send(self, port: int, data: bytes, shutdown_write: bool = False) -> bytes:
        with socket.create_connection((self.host, port), timeout=self.timeout) as sock:
            if data:
                sock.sendall(data)
            if shutdown_write:
                sock.shutdown(socket.SHUT_WR)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def request(self, port: int, data: bytes, **kwargs) -> RawResponse:
        return self.parse(self.send(port, data, **kwargs))

    def get(self, port: int, path: str = "/", method: str = "GET") -> RawResponse:
        raw = f"{method} {path} HTTP/1.1\r\nHost: {self.host}:{port}\r\n\r\n".encode()
        return self.request(port, raw)

    @staticmethod
    def parse(raw: bytes) -> RawResponse:
        head, _, body = raw.partition(b"\r\n\r\n")
        lines = head.decode("utf-8").split("\r\n")
        _, code, reason = lines[0].split(" ", 2)
        headers = {}
        for line in lines[1:]:
            name, value = line.split(":", 1)
            headers[name.strip().lower()] = value.strip()
        return RawResponse(int(code), reason, headers, lines[1:], body)


@pytest.fixture
def client() -> RawClient:
    return RawClient()


# =============================================================================
# LISTENERS
# =============================================================================

@pytest.fixture
def start_listener() -> Generator[Callable[..., Listener], None, None]:
    """
    Factory that starts listeners on OS-assigned ports and stops them
    after the test.

        listener = start_listener(handler, read_timeout=0.5)
    """
    started: List[Listener] = []

    def factory(handler: Handler, name: str = "test", **config) -> Listener:
        config.setdefault("port", 0)
        listener = Listener(ListenerConfig(**config), handler, name=name)
        listener.start()
        started.append(listener)
        return listener

    yield factory

    for listener in started:
        listener.stop()


@pytest.fixture
def echo_handler() -> Handler:
    """Handler that reports what it received as plain text."""

    def handler(request, response):
        lines = [
            f"method={request.method}",
            f"path={request.path}",
            f"body={request.text}",
        ]
        for key, value in sorted(request.query_params.items()):
            lines.append(f"query:{key}={value}")
        response.send_text("\n".join(lines))

    return handler
