r"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses the raw bytes read from a debug client into an immutable
HTTPRequest. The accepted grammar is a forgiving subset of HTTP/1.1:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /api/cpu?format=hex&pretty HTTP/1.1\r\n     ◄── request line   │
    │  Host: localhost:65501\r\n                       ◄── headers        │
    │  Content-Length: 5\r\n                                              │
    │  \r\n                                            ◄── blank line     │
    │  hello                                           ◄── body (5 bytes) │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LENIENCY RULES
=============================================================================

Debug clients are often hand-typed (telnet, nc, curl one-liners), so the
parser tolerates what a strict server would reject:

    - LF-only line endings are accepted as well as CRLF.
    - A request line without a version is HTTP/0.9.
    - Input with no blank line is treated as headers only, no body.
    - Header lines without a colon are skipped.
    - Duplicate headers and duplicate query keys: the last one wins.
    - A body shorter than Content-Length is taken as-is.
    - Input longer than max_request_size is truncated, not rejected.

What is still an error (HTTPParseError, always 400):

    empty input, fewer than two request-line tokens, empty path,
    bad Content-Length

Method and version tokens are not checked: "PURGE", "get" or "HTTP/1.2"
reach the handler as sent.

=============================================================================
PERCENT DECODING
=============================================================================

Both the path and the query are percent-decoded (%XX, UTF-8). The "+"
means space ONLY inside the query string (form encoding); in a path it
is a literal plus:

    /a+b%20c?q=a+b%20c   →   path "/a+b c",  q = "a b c"

Escapes that are not valid UTF-8 decode with "surrogateescape", so no
byte is lost: "%FF" becomes "\udcff", and encoding the text back with
errors="surrogateescape" gives b"\xff" again. HTTPResponse encodes its
body and head the same way, so such a path echoed into a response goes
out as the byte the client sent.

=============================================================================
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional
from urllib.parse import unquote, unquote_plus
import re


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the HTTP status the listener should answer with. The listener
    turns it into an error page and closes the connection.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed inbound request. Built once per connection, never mutated.

    Attributes:
        method:         Request method ("GET", "POST", ...)
        path:           Decoded path without the query string
        version:        Protocol version ("HTTP/1.1", or "HTTP/0.9" if omitted)
        headers:        Read-only mapping, lowercase name → value
        query_params:   Read-only mapping, decoded key → decoded value
        query_string:   The raw (undecoded) query string
        body:           Body bytes, as delimited by Content-Length
        client_address: (ip, port) of the peer
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Mapping[str, str] = field(default_factory=dict)
    query_params: Mapping[str, str] = field(default_factory=dict)
    query_string: str = ""
    body: bytes = b""
    client_address: tuple = ("", 0)

    def __post_init__(self):
        # Freeze the mappings too, and normalize header names so that
        # directly-constructed requests behave like parsed ones.
        headers = {k.lower(): v for k, v in dict(self.headers).items()}
        object.__setattr__(self, "headers", MappingProxyType(headers))
        object.__setattr__(
            self, "query_params", MappingProxyType(dict(self.query_params))
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_length(self) -> int:
        """Declared Content-Length, or 0 if missing or invalid."""
        try:
            return max(int(self.headers.get("content-length", 0)), 0)
        except ValueError:
            return 0

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("text/html; charset=x" → "text/html")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (undecodable bytes replaced)."""
        return self.body.decode("utf-8", errors="replace")

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def has_header(self, name: str) -> bool:
        return name.lower() in self.headers

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a query parameter value.

        A key that appeared without "=" (e.g. "?pretty") has the value "".

        Example:
            # URL: /api/status?pretty&page=2
            request.get_query("page")     # "2"
            request.get_query("pretty")   # ""
            request.get_query("missing")  # None
        """
        return self.query_params.get(name, default)

    def has_query(self, name: str) -> bool:
        return name in self.query_params


# =============================================================================
# DECODING HELPERS
# =============================================================================

def percent_decode(text: str, plus_as_space: bool = False) -> str:
    """
    Decode %XX escapes (UTF-8). Malformed escapes are left as-is.

    Bytes that are not valid UTF-8 become lone surrogates
    (errors="surrogateescape") and can be recovered exactly.

    Args:
        text: Encoded text.
        plus_as_space: Decode "+" to a space (query strings only).
    """
    if plus_as_space:
        return unquote_plus(text, errors="surrogateescape")
    return unquote(text, errors="surrogateescape")


def parse_query_string(query_string: str) -> Dict[str, str]:
    """
    Split "a=1&b=2&flag" into {"a": "1", "b": "2", "flag": ""}.

    Keys and values are decoded with "+" as space. Repeated keys keep
    the last value.
    """
    params: Dict[str, str] = {}
    for pair in query_string.split("&"):
        if not pair:
            continue
        if "=" in pair:
            key, value = pair.split("=", 1)
        else:
            key, value = pair, ""
        key = percent_decode(key, plus_as_space=True)
        if key:
            params[key] = percent_decode(value, plus_as_space=True)
    return params


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    The parser is stateless apart from its size limit, so one instance
    can be shared by every connection a listener handles.
    """

    LINE_SPLIT_PATTERN = re.compile(r"\r?\n")

    def __init__(self, max_request_size: int = 64 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw request data.

        Args:
            data: Bytes read from the client socket.
            client_address: The peer's (ip, port).

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if not data:
            raise HTTPParseError("Empty request")

        # Oversized input has already been cut off by the reader; anything
        # past the limit is ignored rather than rejected.
        if len(data) > self.max_request_size:
            data = data[:self.max_request_size]

        # ─── Split head / body ──────────────────────────────────────────
        head, rest = self._split_head(data)

        text = head.decode("utf-8", errors="replace")
        lines = self.LINE_SPLIT_PATTERN.split(text)

        # ─── Request line ───────────────────────────────────────────────
        method, target, version = self._parse_request_line(lines[0])
        raw_path, _, query_string = target.partition("?")
        raw_path = raw_path.split("#", 1)[0]
        query_string = query_string.split("#", 1)[0]

        path = percent_decode(raw_path)
        if not path:
            raise HTTPParseError("Empty request path")

        # ─── Headers ────────────────────────────────────────────────────
        headers = self._parse_headers(lines[1:])

        # ─── Body ───────────────────────────────────────────────────────
        body = b""
        if "content-length" in headers:
            try:
                length = int(headers["content-length"])
            except ValueError:
                raise HTTPParseError(
                    f"Invalid Content-Length: {headers['content-length']}"
                )
            if length < 0:
                raise HTTPParseError(f"Invalid Content-Length: {length}")
            body = rest[:length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=parse_query_string(query_string),
            query_string=query_string,
            body=body,
            client_address=client_address,
        )

    @staticmethod
    def _split_head(data: bytes) -> tuple:
        """Split at the first blank line (CRLF form first, then bare LF)."""
        for separator in (b"\r\n\r\n", b"\n\n"):
            index = data.find(separator)
            if index != -1:
                return data[:index], data[index + len(separator):]
        return data, b""

    def _parse_request_line(self, line: str) -> tuple:
        """
        Parse "METHOD TARGET [VERSION]".

        Method and version tokens are passed through as sent; handlers
        decide what to do with methods they don't serve.

        Returns:
            Tuple of (method, target, version)
        """
        parts = line.split()
        if len(parts) < 2:
            raise HTTPParseError(f"Malformed request line: {line!r}")

        method, target = parts[0], parts[1]
        version = parts[2] if len(parts) > 2 else "HTTP/0.9"
        return method, target, version

    @staticmethod
    def _parse_headers(lines) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for line in lines:
            if ":" not in line:
                continue
            name, value = line.split(":", 1)
            name = name.strip().lower()
            if name:
                headers[name] = value.strip()
        return headers


def parse_request(data: bytes, max_size: int = 64 * 1024) -> HTTPRequest:
    """Parse request bytes with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data)
