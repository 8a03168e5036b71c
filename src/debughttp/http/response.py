"""
=============================================================================
HTTP RESPONSE
=============================================================================

The mutable outbound message a handler fills in. The listener creates one
per connection, hands it to the handler, then serializes it exactly once.

    Listener                         Handler                    Socket
    ────────                         ───────                    ──────
    HTTPResponse()                   response.send_json(...)
      + enable_cors()     ─────►     response.set_header(...)   ─────►  to_bytes()
      + disable_cache()

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 200 OK\\r\\n                          ← status line
    Date: Mon, 19 Oct 2026 12:00:00 GMT\\r\\n      ← always generated
    Content-Length: 27\\r\\n                       ← computed from body
    Server: DebugHTTP/1.0\\r\\n                    ← default header
    Connection: close\\r\\n                        ← default header
    Content-Type: application/json\\r\\n           ← handler headers...
    \\r\\n
    {"pc":"$C600","a":"$00"}                     ← body, verbatim

Every response advertises "Connection: close": the listener serves one
request per connection.

=============================================================================
"""

from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, Optional, Union
import json

from .status_codes import HTTPStatus, reason_phrase


DEFAULT_SERVER_NAME = "DebugHTTP/1.0"

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Accept"


class HTTPResponse:
    """
    An HTTP response under construction.

    Headers are unique by case-insensitive name; setting "content-type"
    replaces an earlier "Content-Type". Setters return self so calls can
    be chained:

        response.set_status(404).set_header("X-Debug", "1").send_text("gone")
    """

    def __init__(self, server_name: str = DEFAULT_SERVER_NAME):
        self.server_name = server_name
        self.status: int = HTTPStatus.OK
        self.reason: str = HTTPStatus.OK.phrase
        self.headers: Dict[str, str] = {}
        self.body: bytes = b""
        self._set_defaults()

    def _set_defaults(self) -> None:
        self.headers["Server"] = self.server_name
        self.headers["Connection"] = "close"

    def __repr__(self) -> str:
        return (
            f"HTTPResponse(status={int(self.status)}, reason={self.reason!r}, "
            f"headers={len(self.headers)}, body={len(self.body)} bytes)"
        )

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def status_line(self) -> str:
        return f"HTTP/1.1 {int(self.status)} {self.reason}"

    def set_status(self, code: int, reason: Optional[str] = None) -> "HTTPResponse":
        """
        Set the status code.

        Args:
            code: Any integer status code.
            reason: Reason phrase. Defaults to the standard phrase, or
                    "Unknown" for codes without one.
        """
        self.status = code
        self.reason = reason if reason is not None else reason_phrase(code)
        return self

    # =========================================================================
    # HEADERS
    # =========================================================================

    def _find_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key in self.headers:
            if key.lower() == lowered:
                return key
        return None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        existing = self._find_header(name)
        if existing is not None and existing != name:
            del self.headers[existing]
        self.headers[name] = str(value)
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        key = self._find_header(name)
        return self.headers[key] if key is not None else default

    def has_header(self, name: str) -> bool:
        return self._find_header(name) is not None

    def remove_header(self, name: str) -> "HTTPResponse":
        key = self._find_header(name)
        if key is not None:
            del self.headers[key]
        return self

    def set_content_type(self, content_type: str) -> "HTTPResponse":
        return self.set_header("Content-Type", content_type)

    def set_content_length(self, length: int) -> "HTTPResponse":
        """Pin Content-Length. Without this it is computed from the body."""
        return self.set_header("Content-Length", str(length))

    def enable_cors(self, origin: str = "*") -> "HTTPResponse":
        """
        Allow cross-origin reads.

        Debug front-ends are usually served from a different origin than
        the debug ports, so every response is CORS-enabled by default.
        """
        self.set_header("Access-Control-Allow-Origin", origin)
        self.set_header("Access-Control-Allow-Methods", CORS_ALLOW_METHODS)
        self.set_header("Access-Control-Allow-Headers", CORS_ALLOW_HEADERS)
        return self

    def set_cache_control(self, value: str) -> "HTTPResponse":
        return self.set_header("Cache-Control", value)

    def disable_cache(self) -> "HTTPResponse":
        """
        Forbid caching. Introspection data is stale the moment it is sent.

        - Cache-Control for HTTP/1.1 caches
        - Pragma for HTTP/1.0 caches
        - Expires: 0 for anything else
        """
        self.set_cache_control("no-cache, no-store, must-revalidate")
        self.set_header("Pragma", "no-cache")
        self.set_header("Expires", "0")
        return self

    # =========================================================================
    # BODY
    # =========================================================================

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Replace the body. Strings are encoded as UTF-8."""
        if isinstance(body, str):
            body = body.encode("utf-8", errors="surrogateescape")
        self.body = bytes(body)
        return self

    def append_body(self, chunk: Union[str, bytes]) -> "HTTPResponse":
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8", errors="surrogateescape")
        self.body += chunk
        return self

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    # ─── Convenience senders ────────────────────────────────────────────

    def send_html(self, html: str) -> "HTTPResponse":
        self.set_content_type("text/html; charset=utf-8")
        return self.set_body(html)

    def send_text(self, text: str) -> "HTTPResponse":
        self.set_content_type("text/plain; charset=utf-8")
        return self.set_body(text)

    def send_json(self, data: Any) -> "HTTPResponse":
        """
        Send a JSON body.

        Args:
            data: Ready-made JSON text (str or bytes), an object with a
                  to_string() method (a JsonBuilder), or anything the
                  json module can serialize.
        """
        if isinstance(data, (str, bytes)):
            body = data
        elif hasattr(data, "to_string"):
            body = data.to_string()
        else:
            body = json.dumps(data)
        self.set_content_type("application/json")
        return self.set_body(body)

    def send_error(self, code: int, message: str = "") -> "HTTPResponse":
        """
        Replace the body with a small HTML error page.

        The page names the status code and reason and shows the message
        (HTML-escaped). Headers set so far, such as CORS, are kept; a
        pinned Content-Length is dropped since it described the old body.
        """
        self.set_status(code)
        self.remove_header("Content-Length")
        title = f"{int(code)} {escape(self.reason)}"
        page = (
            "<!DOCTYPE html>\n"
            "<html>\n"
            f"<head><title>{title}</title></head>\n"
            "<body>\n"
            f"<h1>{title}</h1>\n"
            f"<p>{escape(message)}</p>\n"
            "<hr>\n"
            f"<p><small>{escape(self.server_name)}</small></p>\n"
            "</body>\n"
            "</html>\n"
        )
        return self.send_html(page)

    def redirect(self, url: str, code: int = HTTPStatus.FOUND) -> "HTTPResponse":
        """Redirect to url (302 unless told otherwise) with a fallback link page."""
        self.set_status(code)
        self.remove_header("Content-Length")
        self.set_header("Location", url)
        link = escape(url, quote=True)
        return self.send_html(
            "<!DOCTYPE html>\n"
            "<html>\n"
            f"<head><title>{int(code)} {escape(self.reason)}</title></head>\n"
            f'<body><p>Redirecting to <a href="{link}">{link}</a></p></body>\n'
            "</html>\n"
        )

    def clear(self) -> "HTTPResponse":
        """Reset to a fresh 200 response with only the default headers."""
        self.status = HTTPStatus.OK
        self.reason = HTTPStatus.OK.phrase
        self.headers = {}
        self.body = b""
        self._set_defaults()
        return self

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_bytes(self) -> bytes:
        """
        Serialize to wire bytes.

        Order: status line, Date, Content-Length, remaining headers in
        insertion order, blank line, body. A caller-supplied Date or
        Content-Length is used instead of the generated one.
        """
        remaining = dict(self.headers)

        date_key = self._find_header("Date")
        date = remaining.pop(date_key) if date_key else format_http_date(
            datetime.now(timezone.utc)
        )
        length_key = self._find_header("Content-Length")
        length = remaining.pop(length_key) if length_key else str(len(self.body))

        lines = [self.status_line, f"Date: {date}", f"Content-Length: {length}"]
        for name, value in remaining.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        head = "\r\n".join(lines).encode("utf-8", errors="surrogateescape")
        return head + b"\r\n" + self.body


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date: "Mon, 19 Oct 2026 12:00:00 GMT".

    Day and month names are always English regardless of locale. Aware
    datetimes are converted to UTC; naive ones are assumed to be UTC.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
