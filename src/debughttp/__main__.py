"""
Command-line entry point: ``python -m debughttp`` (or ``debughttp``).

Runs a listener group with the demo and status providers, which is handy
for checking ports, firewalls and client tooling before embedding the
package in a real host application.
"""

import argparse
import logging
import signal
import sys
import threading

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, GroupConfig
from .core.group import GroupStartError, ListenerGroup
from .handlers import DEMO_PORT, STATUS_PORT, DemoProvider, StatusProvider


logger = logging.getLogger("debughttp")


def build_parser(defaults: GroupConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="debughttp",
        description="Run debug HTTP listeners (demo + status providers)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m debughttp                          # demo on 8080, status on 65500
  python -m debughttp --demo-port 9000         # custom demo port
  python -m debughttp --host 0.0.0.0           # every interface
  python -m debughttp -l DEBUG --log-format json

Environment variables (DEBUGHTTP_BIND, DEBUGHTTP_LOG_LEVEL, ...) set the
defaults; flags override them.
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--host", "-H",
        default=defaults.bind_address,
        help=f"Address to bind (default: {defaults.bind_address}; 0.0.0.0 for all interfaces)",
    )
    parser.add_argument(
        "--demo-port",
        type=int,
        default=DEMO_PORT,
        help=f"Demo provider port (default: {DEMO_PORT})",
    )
    parser.add_argument(
        "--status-port",
        type=int,
        default=STATUS_PORT,
        help=f"Status provider port (default: {STATUS_PORT})",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LIMITS
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=defaults.read_timeout,
        help=f"Seconds allowed for reading one request (default: {defaults.read_timeout:g})",
    )
    parser.add_argument(
        "--max-request-size",
        type=int,
        default=defaults.max_request_size,
        help=f"Bytes read per request at most (default: {defaults.max_request_size})",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / META
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=defaults.log_format,
        help=f"Access log format (default: {defaults.log_format})",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"debughttp {__version__}",
    )
    return parser


def setup_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("debughttp").setLevel(level)


def main(argv=None) -> int:
    defaults = GroupConfig.from_env()
    args = build_parser(defaults).parse_args(argv)

    config = GroupConfig(
        bind_address=args.host,
        enabled=defaults.enabled,
        max_request_size=args.max_request_size,
        read_timeout=args.read_timeout,
        server_name=defaults.server_name,
        log_level=args.log_level,
        log_format=args.log_format,
    )
    try:
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_level)

    group = ListenerGroup(config)
    group.add_provider(DemoProvider(port=args.demo_port))
    group.add_provider(StatusProvider(group, port=args.status_port))

    try:
        group.start()
    except GroupStartError as e:
        print(f"Failed to start listeners:\n{e}", file=sys.stderr)
        return 1

    # ─────────────────────────────────────────────────────────────────────
    # WAIT FOR SIGINT / SIGTERM
    # ─────────────────────────────────────────────────────────────────────
    stop_requested = threading.Event()

    def shutdown_handler(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
        stop_requested.set()

    original_handlers = {
        sig: signal.signal(sig, shutdown_handler)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }

    print("Press Ctrl+C to stop...")
    try:
        while not stop_requested.wait(0.5):
            pass
    finally:
        group.stop()
        for sig, handler in original_handlers.items():
            signal.signal(sig, handler)

    return 0


if __name__ == "__main__":
    sys.exit(main())
