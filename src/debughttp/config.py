"""
=============================================================================
CONFIGURATION
=============================================================================

Two layers of settings:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GroupConfig          one per ListenerGroup                         │
    │  ─────────────        bind address, enabled switch, shared limits,  │
    │                       logging. Can be read from DEBUGHTTP_* env.    │
    │        │                                                            │
    │        │ listener_config(port, **overrides)                         │
    │        ▼                                                            │
    │  ListenerConfig       one per Listener, frozen                      │
    │  ──────────────       port, host, timeouts, buffer sizes            │
    └─────────────────────────────────────────────────────────────────────┘

Precedence, highest first: command-line flags, DEBUGHTTP_* environment
variables, the defaults below.

A ListenerConfig is frozen: a running listener never sees its settings
change underneath it. Listener.reconfigure() swaps in a new object while
the listener is stopped.

=============================================================================
"""

import os
from dataclasses import dataclass, replace


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass(frozen=True)
class ListenerConfig:
    """Settings for a single Listener."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    port: int
    """
    TCP port to listen on. 0 asks the OS for a free port; the chosen one
    is reported by Listener.port once bound.
    """

    host: str = "127.0.0.1"
    """
    Address to bind. "0.0.0.0" or "" means every interface. Anything else
    must be a literal IPv4 address; host names are rejected.
    """

    backlog: int = 10
    """Pending-connection queue length passed to listen()."""

    buffer_size: int = 4096
    """Bytes requested per recv() call."""

    poll_interval: float = 0.1
    """
    Seconds the accept loop waits for a connection before re-checking the
    shutdown flag. Bounds how long stop() waits for an idle listener.
    """

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 64 * 1024
    """Bytes read per request at most. Longer requests are cut off."""

    read_timeout: float = 5.0
    """Overall deadline in seconds for reading one request."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY / LOGGING
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "DebugHTTP/1.0"
    """Value of the Server header."""

    access_log_format: str = "text"
    """Access log line format: 'text' or 'json'."""

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.backlog < 1:
            raise ValueError(f"backlog must be >= 1, got {self.backlog}")
        if self.buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {self.buffer_size}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")
        if self.max_request_size < 1:
            raise ValueError(f"max_request_size must be >= 1, got {self.max_request_size}")
        if self.read_timeout <= 0:
            raise ValueError(f"read_timeout must be > 0, got {self.read_timeout}")
        if self.access_log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid access_log_format: {self.access_log_format}")

    def with_changes(self, **changes) -> "ListenerConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


@dataclass
class GroupConfig:
    """
    Settings shared by every listener in a ListenerGroup.

    Usage:
        config = GroupConfig.from_env()
        group = ListenerGroup(config)
    """

    bind_address: str = "127.0.0.1"
    """Host every listener binds to."""

    enabled: bool = True
    """When False, ListenerGroup.start() refuses to start anything."""

    max_request_size: int = 64 * 1024
    read_timeout: float = 5.0
    server_name: str = "DebugHTTP/1.0"

    log_level: str = "INFO"
    """Root logging level set up by the CLI."""

    log_format: str = "text"
    """Access log format for every listener: 'text' or 'json'."""

    @classmethod
    def from_env(cls) -> "GroupConfig":
        """
        Build from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        DEBUGHTTP_BIND              bind address (default: 127.0.0.1)
        DEBUGHTTP_ENABLED           "0", "false", "no", "off" disable
        DEBUGHTTP_MAX_REQUEST_SIZE  bytes (default: 65536)
        DEBUGHTTP_READ_TIMEOUT      seconds (default: 5)
        DEBUGHTTP_LOG_LEVEL         DEBUG/INFO/... (default: INFO)
        DEBUGHTTP_LOG_FORMAT        text/json (default: text)

        =====================================================================
        """
        enabled = os.getenv("DEBUGHTTP_ENABLED", "1").strip().lower()
        return cls(
            bind_address=os.getenv("DEBUGHTTP_BIND", "127.0.0.1"),
            enabled=enabled not in ("0", "false", "no", "off"),
            max_request_size=int(os.getenv("DEBUGHTTP_MAX_REQUEST_SIZE", str(64 * 1024))),
            read_timeout=float(os.getenv("DEBUGHTTP_READ_TIMEOUT", "5")),
            log_level=os.getenv("DEBUGHTTP_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("DEBUGHTTP_LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> None:
        if self.max_request_size < 1:
            raise ValueError(f"max_request_size must be >= 1, got {self.max_request_size}")
        if self.read_timeout <= 0:
            raise ValueError(f"read_timeout must be > 0, got {self.read_timeout}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}")

    def listener_config(self, port: int, **overrides) -> ListenerConfig:
        """Derive the ListenerConfig for one port."""
        settings = dict(
            port=port,
            host=self.bind_address,
            max_request_size=self.max_request_size,
            read_timeout=self.read_timeout,
            server_name=self.server_name,
            access_log_format=self.log_format,
        )
        settings.update(overrides)
        return ListenerConfig(**settings)
