"""
=============================================================================
LISTENER
=============================================================================

One bound TCP port, one accept-loop thread, one handler callback.

=============================================================================
LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   CREATED ──bind()──► BOUND ──listen()──► LISTENING ──thread──►     │
    │      ▲                  │                     │        ACCEPTING     │
    │      │                  │ OSError             │ OSError     │        │
    │      └──────────────────┴─────────────────────┘             │        │
    │      (last_error set, ListenerError raised)            stop()│        │
    │                                                             ▼        │
    │                                                          STOPPED     │
    │                                                   (start() again OK) │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ACCEPT LOOP
=============================================================================

    while not stopping:
        select([listen_socket], timeout=poll_interval)   ◄── only wait point
        ├── timeout  → loop (re-checks the stop flag)
        └── readable → accept() → handle the client right here, then loop

Clients are handled one at a time on the accept thread. There is no
worker pool: a debug port serves one inspector, and handlers read host
state that is not meant to be touched from many threads at once.

Per client:

    read (bounded by read_timeout and max_request_size)
      │
      ├── unparseable   → error page with the parse error's status
      ├── OPTIONS       → 204 + CORS + Access-Control-Max-Age: 86400
      └── anything else → response pre-set with CORS + no-cache headers
                          → handler(request, response)
                          → handler raised? → 500 "Internal error: ..."
      │
    send, log one access record, close

No failure while serving a client stops the loop.

=============================================================================
"""

import select
import socket
import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional, Tuple

from ..config import ListenerConfig
from ..http.request import HTTPRequest, HTTPParseError, RequestParser
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus
from .access_log import AccessLogEntry, access_timestamp, log_access
from .connection import Connection


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest, HTTPResponse], None]
"""handler(request, response): fill in the response, return nothing."""

CORS_PREFLIGHT_MAX_AGE = "86400"


class ListenerState(Enum):
    CREATED = "created"
    BOUND = "bound"
    LISTENING = "listening"
    ACCEPTING = "accepting"
    STOPPED = "stopped"


class ListenerError(Exception):
    """A listener could not be started (bind, listen, bad address, ...)."""


class Listener:
    """
    Serves one port with one handler.

    Usage:
        def handler(request, response):
            response.send_text(f"you asked for {request.path}")

        listener = Listener(ListenerConfig(port=65501), handler, name="cpu")
        listener.start()          # returns once the port accepts connections
        ...
        listener.stop()           # idempotent

    Or as a context manager:

        with Listener(ListenerConfig(port=0), handler) as listener:
            print(listener.port)  # the port the OS picked
    """

    def __init__(self, config: ListenerConfig, handler: Handler, name: Optional[str] = None):
        config.validate()
        self._config = config
        self._handler = handler
        self._name = name or f"port-{config.port}"
        self._parser = RequestParser(max_request_size=config.max_request_size)

        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._state = ListenerState.CREATED
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._bound_port: Optional[int] = None
        self._last_error = ""

    def __repr__(self) -> str:
        return f"Listener(name={self._name!r}, port={self.port}, state={self._state.value})"

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> ListenerConfig:
        return self._config

    @property
    def handler(self) -> Handler:
        return self._handler

    @property
    def host(self) -> str:
        return self._config.host

    @property
    def port(self) -> int:
        """The bound port once bound (resolves port 0), else the configured one."""
        if self._bound_port is not None:
            return self._bound_port
        return self._config.port

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)

    @property
    def url(self) -> str:
        host = self.host if self.host not in ("", "0.0.0.0") else "127.0.0.1"
        return f"http://{host}:{self.port}/"

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return (
            self._state == ListenerState.ACCEPTING
            and thread is not None
            and thread.is_alive()
        )

    @property
    def last_error(self) -> str:
        """Most recent start or accept error, "" if none."""
        return self._last_error

    def reconfigure(self, **changes) -> ListenerConfig:
        """
        Replace config fields while the listener is not running.

        Raises:
            ListenerError: If the listener is running.
            ValueError: If the new settings are invalid.
        """
        with self._lock:
            if self._state in (ListenerState.BOUND, ListenerState.LISTENING, ListenerState.ACCEPTING):
                raise ListenerError(f"Cannot reconfigure running listener '{self._name}'")
            new_config = self._config.with_changes(**changes)
            new_config.validate()
            self._config = new_config
            self._parser = RequestParser(max_request_size=new_config.max_request_size)
            self._bound_port = None
            return new_config

    # =========================================================================
    # START
    # =========================================================================

    def start(self) -> None:
        """
        Bind, listen and launch the accept thread.

        Returns once connections are being accepted.

        Raises:
            ListenerError: If already running, or on any bind/listen failure.
                           The listener is left in CREATED with last_error set.
        """
        with self._lock:
            if self._state in (ListenerState.BOUND, ListenerState.LISTENING, ListenerState.ACCEPTING):
                raise ListenerError(f"Listener '{self._name}' is already running")

            self._last_error = ""
            self._bound_port = None
            self._state = ListenerState.CREATED
            config = self._config

            bind_host = self._resolve_bind_address(config.host)
            sock = self._create_socket()

            try:
                sock.bind((bind_host, config.port))
            except OSError as e:
                sock.close()
                self._fail(f"Failed to bind socket to {config.host}:{config.port}: {e}", e)
            self._state = ListenerState.BOUND
            self._bound_port = sock.getsockname()[1]

            try:
                sock.listen(config.backlog)
                sock.setblocking(False)
            except OSError as e:
                sock.close()
                self._bound_port = None
                self._fail(f"Failed to listen on {config.host}:{config.port}: {e}", e)
            self._state = ListenerState.LISTENING

            self._socket = sock
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._accept_loop,
                args=(sock,),
                name=f"listener-{self._name}",
                daemon=True,
            )
            self._state = ListenerState.ACCEPTING
            self._thread.start()

        logger.info(f"Listener '{self._name}' accepting on {self.url}")

    def _fail(self, message: str, cause: Optional[BaseException] = None) -> None:
        self._last_error = message
        self._state = ListenerState.CREATED
        logger.error(f"Listener '{self._name}': {message}")
        raise ListenerError(message) from cause

    def _resolve_bind_address(self, host: str) -> str:
        """Return the address to bind, "0.0.0.0" for any interface."""
        if host in ("", "0.0.0.0"):
            return "0.0.0.0"
        try:
            socket.inet_pton(socket.AF_INET, host)
        except (OSError, ValueError) as e:
            self._fail(f"Invalid bind address: {host}", e)
        return host

    def _create_socket(self) -> socket.socket:
        """
        Create the listening socket.

        SO_REUSEADDR lets a restarted listener rebind a port in TIME_WAIT,
        but on POSIX it still refuses a port another socket is listening on.
        Windows gives SO_REUSEADDR port-stealing semantics, so there the
        exclusive option is used instead.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            if hasattr(socket, "SO_EXCLUSIVEADDRUSE"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_EXCLUSIVEADDRUSE, 1)
            else:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError as e:
            sock.close()
            self._fail(f"Failed to set socket options: {e}", e)
        return sock

    # =========================================================================
    # STOP
    # =========================================================================

    def stop(self) -> None:
        """
        Stop accepting and wait for the accept thread to finish.

        Safe to call at any time, any number of times. If a client is being
        served, waits for that client to finish.
        """
        with self._lock:
            thread = self._thread
            sock = self._socket
            if thread is None and sock is None:
                return

            self._stop_event.set()
            self._socket = None
            self._thread = None

            if sock is not None:
                try:
                    sock.close()
                except OSError:
                    pass

            if thread is not None and thread is not threading.current_thread():
                thread.join()

            self._state = ListenerState.STOPPED

        logger.info(f"Listener '{self._name}' stopped")

    def __enter__(self) -> "Listener":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def _accept_loop(self, sock: socket.socket) -> None:
        poll_interval = self._config.poll_interval

        while not self._stop_event.is_set():
            try:
                readable, _, _ = select.select([sock], [], [], poll_interval)
            except (OSError, ValueError) as e:
                # Closing the socket from stop() lands here too.
                if not self._stop_event.is_set():
                    self._record_error(f"Accept poll failed: {e}")
                break

            if not readable:
                continue

            try:
                client_socket, client_address = sock.accept()
            except (BlockingIOError, InterruptedError):
                continue
            except OSError as e:
                if self._stop_event.is_set():
                    break
                self._record_error(f"Accept failed: {e}")
                self._stop_event.wait(poll_interval)
                continue

            self._handle_client(client_socket, client_address)

        logger.debug(f"Accept loop for '{self._name}' exited")

    def _record_error(self, message: str) -> None:
        self._last_error = message
        logger.error(f"Listener '{self._name}': {message}")

    # =========================================================================
    # CLIENT HANDLING
    # =========================================================================

    def _handle_client(self, client_socket: socket.socket, client_address: tuple) -> None:
        """Serve exactly one request on a freshly accepted socket."""
        config = self._config
        started = time.monotonic()

        try:
            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=config.buffer_size,
                read_timeout=config.read_timeout,
                max_request_size=config.max_request_size,
            )
        except OSError as e:
            logger.warning(f"Dropping connection from {client_address}: {e}")
            client_socket.close()
            return

        with conn:
            logger.debug(f"[{conn.id}] Accepted {conn.client_ip} on '{self._name}'")
            request = None
            response = None
            try:
                data = conn.read_request()
                request, response = self._respond(data, client_address)
                conn.send_all(response.to_bytes())
            except Exception:
                logger.exception(f"[{conn.id}] Unexpected error serving {conn.client_ip}")

            if response is not None:
                self._log_access(conn, request, response, started)

    def _new_response(self) -> HTTPResponse:
        return HTTPResponse(server_name=self._config.server_name)

    def _respond(self, data: bytes, client_address: tuple):
        """
        Turn raw request bytes into (request, response).

        request is None when the bytes could not be parsed.
        """
        response = self._new_response()

        try:
            request = self._parser.parse(data, client_address)
        except HTTPParseError as e:
            logger.debug(f"Bad request on '{self._name}' from {client_address[0]}: {e}")
            response.send_error(e.status_code, f"Invalid HTTP request: {e}")
            return None, response

        if request.method == "OPTIONS":
            response.set_status(HTTPStatus.NO_CONTENT)
            response.enable_cors()
            response.set_header("Access-Control-Max-Age", CORS_PREFLIGHT_MAX_AGE)
            return request, response

        response.enable_cors()
        response.disable_cache()

        try:
            self._handler(request, response)
        except Exception as e:
            logger.exception(
                f"Handler for '{self._name}' failed on {request.method} {request.path}"
            )
            response.send_error(HTTPStatus.INTERNAL_SERVER_ERROR, f"Internal error: {e}")

        if request.method == "HEAD":
            response.set_content_length(len(response.body))
            response.body = b""

        return request, response

    def _log_access(self, conn: Connection, request: Optional[HTTPRequest],
                    response: HTTPResponse, started: float) -> None:
        entry = AccessLogEntry(
            connection_id=conn.id,
            listener=self._name,
            client_ip=conn.client_ip,
            method=request.method if request else "-",
            path=request.path if request else "-",
            query=request.query_string if request else "",
            user_agent=(request.user_agent if request else "") or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=(time.monotonic() - started) * 1000,
            timestamp=access_timestamp(),
        )
        log_access(entry, self._config.access_log_format)
