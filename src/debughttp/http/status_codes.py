"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Status codes and reason phrases used by the debug listeners.

A debug server only ever produces a handful of statuses: 200 for data,
204 for CORS preflight, 3xx for redirects, 4xx for bad requests and
unknown paths, 5xx for handler faults. The enum below keeps those and
the neighbours a handler is likely to reach for.

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── Reason phrase (reason_phrase(404))
              └───────── Status code   (HTTPStatus.NOT_FOUND)

Codes outside the enum are still legal on the wire; their reason phrase
is "Unknown".

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # =========================================================================
    # 2xx SUCCESS
    # =========================================================================
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204                    # CORS preflight answer

    # =========================================================================
    # 3xx REDIRECTION
    # =========================================================================
    MOVED_PERMANENTLY = 301
    FOUND = 302                         # Default for redirect()
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    # =========================================================================
    # 4xx CLIENT ERRORS
    # =========================================================================
    BAD_REQUEST = 400                   # Unparseable request
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404                     # No provider route for path
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    UNSUPPORTED_MEDIA_TYPE = 415
    TOO_MANY_REQUESTS = 429

    # =========================================================================
    # 5xx SERVER ERRORS
    # =========================================================================
    INTERNAL_SERVER_ERROR = 500         # Handler raised
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503           # Provider reports unavailable
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self < 400

    @property
    def is_error(self) -> bool:
        """4xx or 5xx."""
        return self >= 400


_STATUS_PHRASES = {
    # 2xx Success
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",

    # 3xx Redirection
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.SEE_OTHER: "See Other",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.TEMPORARY_REDIRECT: "Temporary Redirect",
    HTTPStatus.PERMANENT_REDIRECT: "Permanent Redirect",

    # 4xx Client Errors
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.URI_TOO_LONG: "URI Too Long",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
    HTTPStatus.TOO_MANY_REQUESTS: "Too Many Requests",

    # 5xx Server Errors
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.GATEWAY_TIMEOUT: "Gateway Timeout",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def reason_phrase(code: int) -> str:
    """
    Get the reason phrase for any integer status code.

    Unlike ``HTTPStatus(code).phrase`` this never raises: codes that are
    not in the enum map to "Unknown".
    """
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown"
