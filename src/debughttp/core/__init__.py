"""
=============================================================================
CORE NETWORKING
=============================================================================

Sockets and threads. Everything above this package deals in HTTPRequest
and HTTPResponse objects only.

    ListenerGroup ──owns──► Listener ──accepts──► Connection
      (group.py)            (listener.py)          (connection.py)
         │                       │
         │                       └── one access record per connection
         │                           (access_log.py)
         └── all-or-nothing start, status()

=============================================================================
"""

from .access_log import AccessLogEntry, log_access
from .connection import Connection, ConnectionState, message_complete
from .group import GroupStartError, ListenerGroup, ListenerStatus
from .listener import Handler, Listener, ListenerError, ListenerState

__all__ = [
    "AccessLogEntry",
    "log_access",
    "Connection",
    "ConnectionState",
    "message_complete",
    "GroupStartError",
    "ListenerGroup",
    "ListenerStatus",
    "Handler",
    "Listener",
    "ListenerError",
    "ListenerState",
]
