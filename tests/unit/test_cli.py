"""
Tests for the command-line entry point.
"""

import socket

import pytest

from debughttp import __version__
from debughttp.__main__ import build_parser, main
from debughttp.config import GroupConfig


class TestArguments:

    def test_defaults(self):
        args = build_parser(GroupConfig()).parse_args([])

        assert args.host == "127.0.0.1"
        assert args.demo_port == 8080
        assert args.status_port == 65500
        assert args.log_level == "INFO"
        assert args.log_format == "text"

    def test_env_defaults_shown(self):
        args = build_parser(GroupConfig(bind_address="0.0.0.0", read_timeout=2.0)).parse_args([])

        assert args.host == "0.0.0.0"
        assert args.read_timeout == 2.0

    def test_overrides(self):
        args = build_parser(GroupConfig()).parse_args(
            ["-H", "0.0.0.0", "--demo-port", "9000", "-l", "DEBUG", "--log-format", "json"]
        )

        assert args.host == "0.0.0.0"
        assert args.demo_port == 9000
        assert args.log_level == "DEBUG"
        assert args.log_format == "json"

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser(GroupConfig()).parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestMain:

    def test_invalid_setting_exits_2(self, capsys):
        assert main(["--read-timeout", "0"]) == 2
        assert "read_timeout" in capsys.readouterr().err

    def test_port_in_use_exits_1(self, capsys):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            port = blocker.getsockname()[1]

            code = main(["--demo-port", str(port), "--status-port", "0"])

        assert code == 1
        err = capsys.readouterr().err
        assert "Failed to start listeners" in err
        assert "demo failed:" in err
