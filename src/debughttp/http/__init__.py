r"""
=============================================================================
HTTP PROTOCOL
=============================================================================

The message layer: raw bytes in, HTTPRequest out; HTTPResponse in, raw
bytes out. Nothing here touches a socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST (request.py)                                                │
    │   b"GET /api/status?pretty=1 HTTP/1.1\r\nHost: ...\r\n\r\n"         │
    │     → HTTPRequest(method="GET", path="/api/status",                 │
    │                   query_params={"pretty": "1"}, ...)                │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE (response.py)                                              │
    │   HTTPResponse().send_json(builder)                                 │
    │     → b"HTTP/1.1 200 OK\r\nDate: ...\r\nContent-Length: ..."        │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus.NOT_FOUND → 404, reason_phrase(599) → "Unknown"        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
    parse_query_string,
    percent_decode,
)
from .response import HTTPResponse, format_http_date
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "parse_query_string",
    "percent_decode",

    # Response building
    "HTTPResponse",
    "format_http_date",

    # Status codes
    "HTTPStatus",
    "reason_phrase",
]
