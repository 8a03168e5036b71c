"""
Provider base class.

A listener only needs a callable ``handler(request, response)``. An
InfoProvider packages that callable with the name and port it should be
served on, a path table, and an availability switch, so a group can add
it in one call:

    class CPUProvider(InfoProvider):
        name = "cpu"
        port = 65503

        def routes(self):
            return {"/": self.overview, "/api/registers": self.registers}

        def registers(self, request, response):
            response.send_json(...)

    group.add_provider(CPUProvider())
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus


Route = Callable[[HTTPRequest, HTTPResponse], None]


class InfoProvider(ABC):
    """
    Serves one category of debug information on one port.

    Subclasses set ``name`` and ``port`` (class attributes or properties)
    and implement routes(). Override handle() for anything routes() can't
    express, and is_available() when the data source can go away.
    """

    name: str = "provider"
    port: int = 0

    @abstractmethod
    def routes(self) -> Dict[str, Route]:
        """Map exact request paths to route callables."""

    def is_available(self) -> bool:
        return True

    def handle(self, request: HTTPRequest, response: HTTPResponse) -> None:
        route = self.routes().get(request.path)
        if route is None:
            response.send_error(HTTPStatus.NOT_FOUND, f"No such endpoint: {request.path}")
            return
        route(request, response)

    def __call__(self, request: HTTPRequest, response: HTTPResponse) -> None:
        if not self.is_available():
            response.send_error(
                HTTPStatus.SERVICE_UNAVAILABLE,
                f"{self.name} information is not available right now",
            )
            return
        self.handle(request, response)

    # ─── Hex formatting ─────────────────────────────────────────────────

    @staticmethod
    def to_hex8(value: int) -> str:
        """0xFF → "FF"."""
        return f"{value & 0xFF:02X}"

    @staticmethod
    def to_hex16(value: int) -> str:
        """0xC600 → "C600"."""
        return f"{value & 0xFFFF:04X}"

    @staticmethod
    def to_hex8_prefixed(value: int) -> str:
        return "$" + InfoProvider.to_hex8(value)

    @staticmethod
    def to_hex16_prefixed(value: int) -> str:
        return "$" + InfoProvider.to_hex16(value)
