"""
=============================================================================
LISTENER GROUP
=============================================================================

Owns a named set of listeners and starts or stops them as one unit.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  ListenerGroup                                                       │
    │  ├── "cpu"     Listener :65501 ──► cpu handler                       │
    │  ├── "memory"  Listener :65502 ──► memory handler                    │
    │  ├── "disk"    Listener :65503 ──► disk handler                      │
    │  └── "status"  Listener :65504 ──► StatusProvider(group)             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ALL-OR-NOTHING START
=============================================================================

    start():
        for each listener (insertion order):
            try start, remember failures
        any failure?
            stop every listener that did start
            raise GroupStartError("cpu failed: ...\\ndisk failed: ...")

A caller never sees a half-running group: either every port is up or
none is. Every listener is attempted even after the first failure, so
the error names every port that is unavailable, not just the first.

The group is an ordinary object the host application creates at startup
and stops at shutdown. Nothing here is global.

=============================================================================
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from ..config import GroupConfig
from .listener import Handler, Listener, ListenerError


logger = logging.getLogger(__name__)


class GroupStartError(Exception):
    """
    The group could not be started.

    Attributes:
        failures: (listener name, error message) for each listener that
                  failed. Empty when the group is disabled.
    """

    def __init__(self, message: str, failures: Optional[List[Tuple[str, str]]] = None):
        super().__init__(message)
        self.failures = failures or []


@dataclass
class ListenerStatus:
    """Snapshot of one listener for status reporting."""

    name: str
    port: int
    running: bool
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "port": self.port,
            "running": self.running,
            "error": self.error,
        }


class ListenerGroup:
    """
    A set of listeners started and stopped together.

    Usage:
        group = ListenerGroup(GroupConfig(bind_address="127.0.0.1"))
        group.add("cpu", cpu_handler, 65501)
        group.add_provider(StatusProvider(group))
        try:
            group.start()
        except GroupStartError as e:
            print(e)          # one line per port that failed
        ...
        group.stop()
    """

    def __init__(self, config: Optional[GroupConfig] = None):
        self.config = config or GroupConfig()
        self.config.validate()
        self._listeners: Dict[str, Listener] = {}
        self._running = False
        self._last_error = ""
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"ListenerGroup(listeners={list(self._listeners)}, running={self._running})"

    # =========================================================================
    # MEMBERSHIP
    # =========================================================================

    def add(self, name: str, handler: Handler, port: int, **overrides) -> Listener:
        """
        Create a listener for handler on port and add it.

        Args:
            name: Unique listener name.
            handler: handler(request, response) callable.
            port: TCP port (0 for an OS-assigned port).
            **overrides: ListenerConfig fields that differ from the group's.
        """
        config = self.config.listener_config(port, **overrides)
        return self.add_listener(Listener(config, handler, name=name))

    def add_provider(self, provider, **overrides) -> Listener:
        """Add a listener for an object with name, port and __call__ (an InfoProvider)."""
        return self.add(provider.name, provider, provider.port, **overrides)

    def add_listener(self, listener: Listener) -> Listener:
        """
        Add an already-built listener.

        Raises:
            ValueError: If the name is taken.
            RuntimeError: If the group is running.
        """
        with self._lock:
            if self._running:
                raise RuntimeError("Cannot add listeners to a running group")
            if listener.name in self._listeners:
                raise ValueError(f"Duplicate listener name: {listener.name}")
            self._listeners[listener.name] = listener
        return listener

    def get(self, name: str) -> Optional[Listener]:
        return self._listeners.get(name)

    def __getitem__(self, name: str) -> Listener:
        return self._listeners[name]

    def __contains__(self, name: str) -> bool:
        return name in self._listeners

    def __iter__(self) -> Iterator[Listener]:
        return iter(list(self._listeners.values()))

    def __len__(self) -> int:
        return len(self._listeners)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_error(self) -> str:
        """Aggregate message from the last failed start, "" otherwise."""
        return self._last_error

    def start(self) -> None:
        """
        Start every listener, or none.

        A no-op if the group is already running.

        Raises:
            GroupStartError: If the group is disabled or any listener failed.
                             No listener is left running.
        """
        with self._lock:
            if self._running:
                return

            if not self.config.enabled:
                self._last_error = "Listener group is disabled"
                raise GroupStartError(self._last_error)

            self._last_error = ""
            started: List[Listener] = []
            failures: List[Tuple[str, str]] = []

            for listener in self._listeners.values():
                try:
                    listener.start()
                except ListenerError as e:
                    failures.append((listener.name, str(e)))
                else:
                    started.append(listener)

            if failures:
                for listener in started:
                    listener.stop()
                self._last_error = "\n".join(
                    f"{name} failed: {error}" for name, error in failures
                )
                logger.error(
                    f"Listener group failed to start, rolled back "
                    f"{len(started)} listener(s):\n{self._last_error}"
                )
                raise GroupStartError(self._last_error, failures)

            self._running = True

        for listener in started:
            logger.info(f"  {listener.name:<12} {listener.url}")
        logger.info(f"Listener group started ({len(started)} listener(s))")

    def stop(self) -> None:
        """Stop every listener. Safe to call repeatedly, or before start()."""
        with self._lock:
            for listener in self._listeners.values():
                listener.stop()
            was_running = self._running
            self._running = False

        if was_running:
            logger.info("Listener group stopped")

    def status(self) -> List[ListenerStatus]:
        """One ListenerStatus per listener, in the order they were added."""
        return [
            ListenerStatus(
                name=listener.name,
                port=listener.port,
                running=listener.is_running,
                error=listener.last_error,
            )
            for listener in list(self._listeners.values())
        ]

    def __enter__(self) -> "ListenerGroup":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
