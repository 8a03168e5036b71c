"""
=============================================================================
DEBUGHTTP - Embedded HTTP Listeners for Read-Only Introspection
=============================================================================

A small HTTP/1.1 server framework for exposing a host application's
internal state (an emulator, a game, a long-running daemon) on a few
local ports, one port per category of information.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         HOST APPLICATION                             │
    │                                                                      │
    │   state ◄──reads── handler(request, response) ◄── Listener :65501    │
    │   state ◄──reads── handler(request, response) ◄── Listener :65502    │
    │                                                        ▲             │
    │                                 ListenerGroup ─────────┘             │
    │                                 (start all or none, stop all)        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    debughttp/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m debughttp)
    ├── config.py            # ListenerConfig, GroupConfig
    ├── core/                # Sockets and threads
    │   ├── listener.py      # One port, one accept thread, one handler
    │   ├── group.py         # All-or-nothing group of listeners
    │   ├── connection.py    # One accepted client socket
    │   └── access_log.py    # Per-connection access records
    ├── http/                # Message layer
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Response building and serialization
    │   └── status_codes.py  # Status codes and reason phrases
    ├── render/              # Body producers
    │   ├── json_builder.py  # Incremental JSON emitter
    │   └── template.py      # Logic-less templates
    └── handlers/            # Ready-made providers
        ├── base.py          # InfoProvider base class
        ├── status.py        # Group status pages
        └── demo.py          # Smoke-test pages

=============================================================================
QUICK START
=============================================================================

    from debughttp import GroupConfig, JsonBuilder, ListenerGroup

    def registers(request, response):
        builder = JsonBuilder()
        builder.begin_object()
        builder.add_hex16("pc", cpu.pc)
        builder.add_hex8("a", cpu.a)
        builder.end_object()
        response.send_json(builder)

    group = ListenerGroup(GroupConfig())
    group.add("cpu", registers, 65503)
    group.start()
    ...
    group.stop()

=============================================================================
"""

__version__ = "1.0.0"

from .config import GroupConfig, ListenerConfig
from .core import (
    GroupStartError,
    Handler,
    Listener,
    ListenerError,
    ListenerGroup,
    ListenerState,
    ListenerStatus,
)
from .http import HTTPParseError, HTTPRequest, HTTPResponse, HTTPStatus
from .render import JsonBuilder, JsonBuilderError, Template
from .handlers import DemoProvider, InfoProvider, StatusProvider

__all__ = [
    "__version__",

    # Configuration
    "GroupConfig",
    "ListenerConfig",

    # Listeners
    "Handler",
    "Listener",
    "ListenerError",
    "ListenerState",
    "ListenerGroup",
    "ListenerStatus",
    "GroupStartError",

    # HTTP messages
    "HTTPRequest",
    "HTTPResponse",
    "HTTPParseError",
    "HTTPStatus",

    # Rendering
    "JsonBuilder",
    "JsonBuilderError",
    "Template",

    # Providers
    "InfoProvider",
    "StatusProvider",
    "DemoProvider",
]
