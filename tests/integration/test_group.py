"""
Integration tests for ListenerGroup start/stop semantics.
"""

import socket

import pytest

from debughttp.config import GroupConfig
from debughttp.core.group import GroupStartError, ListenerGroup
from debughttp.handlers.demo import DemoProvider


@pytest.fixture
def group():
    group = ListenerGroup()
    yield group
    group.stop()


@pytest.fixture
def busy_port():
    """A port with another socket already listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        yield blocker.getsockname()[1]


class TestMembership:

    def test_add_and_lookup(self, group, echo_handler):
        listener = group.add("cpu", echo_handler, 0)

        assert "cpu" in group
        assert group["cpu"] is listener
        assert group.get("missing") is None
        assert len(group) == 1
        assert list(group) == [listener]

    def test_duplicate_name(self, group, echo_handler):
        group.add("cpu", echo_handler, 0)

        with pytest.raises(ValueError, match="Duplicate"):
            group.add("cpu", echo_handler, 0)

    def test_add_provider(self, group):
        listener = group.add_provider(DemoProvider(port=0))

        assert listener.name == "demo"
        assert listener.config.port == 0

    def test_listeners_inherit_group_config(self, echo_handler):
        group = ListenerGroup(GroupConfig(read_timeout=1.5, server_name="Probe/1.0"))

        listener = group.add("cpu", echo_handler, 0)

        assert listener.config.read_timeout == 1.5
        assert listener.config.server_name == "Probe/1.0"

    def test_add_while_running(self, group, echo_handler):
        group.add("a", echo_handler, 0)
        group.start()

        with pytest.raises(RuntimeError):
            group.add("b", echo_handler, 0)


class TestStart:

    def test_start_all(self, group, echo_handler, client):
        group.add("a", echo_handler, 0)
        group.add("b", echo_handler, 0)

        group.start()

        assert group.is_running
        assert all(status.running for status in group.status())
        for listener in group:
            assert client.get(listener.port, f"/{listener.name}").status == 200

    def test_start_is_idempotent(self, group, echo_handler):
        group.add("a", echo_handler, 0)
        group.start()
        port = group["a"].port

        group.start()

        assert group.is_running
        assert group["a"].port == port

    def test_one_port_in_use_rolls_back(self, group, echo_handler, busy_port):
        group.add("first", echo_handler, 0)
        group.add("second", echo_handler, busy_port)
        group.add("third", echo_handler, 0)

        with pytest.raises(GroupStartError) as exc_info:
            group.start()

        assert not group.is_running
        assert not any(listener.is_running for listener in group)
        assert [name for name, _ in exc_info.value.failures] == ["second"]
        assert str(exc_info.value).startswith("second failed: Failed to bind socket")
        assert group.last_error == str(exc_info.value)

    def test_every_failure_reported(self, group, echo_handler, busy_port):
        group.add("a", echo_handler, busy_port)
        group.add("b", echo_handler, 0, host="999.1.1.1")

        with pytest.raises(GroupStartError) as exc_info:
            group.start()

        lines = str(exc_info.value).split("\n")
        assert len(lines) == 2
        assert lines[0].startswith("a failed: ")
        assert lines[1] == "b failed: Invalid bind address: 999.1.1.1"

    def test_retry_after_failure(self, echo_handler):
        group = ListenerGroup()
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]
        group.add("a", echo_handler, port)

        try:
            with pytest.raises(GroupStartError):
                group.start()
            blocker.close()

            group.start()

            assert group.is_running
            assert group.last_error == ""
        finally:
            blocker.close()
            group.stop()

    def test_disabled_group(self, echo_handler):
        group = ListenerGroup(GroupConfig(enabled=False))
        group.add("a", echo_handler, 0)

        with pytest.raises(GroupStartError, match="disabled"):
            group.start()

        assert not group.is_running
        assert not group["a"].is_running

    def test_empty_group_starts(self, group):
        group.start()

        assert group.is_running
        assert group.status() == []


class TestStop:

    def test_stop_before_start(self, group, echo_handler):
        group.add("a", echo_handler, 0)

        group.stop()
        group.stop()

        assert not group.is_running

    def test_stop_after_start(self, group, echo_handler):
        group.add("a", echo_handler, 0)
        group.add("b", echo_handler, 0)
        group.start()

        group.stop()
        group.stop()

        assert not group.is_running
        assert not any(status.running for status in group.status())

    def test_context_manager(self, echo_handler, client):
        group = ListenerGroup()
        group.add("a", echo_handler, 0)

        with group:
            assert client.get(group["a"].port).status == 200

        assert not group.is_running

    def test_status_dicts(self, group, echo_handler):
        group.add("a", echo_handler, 0)
        group.start()

        data = [status.to_dict() for status in group.status()]

        assert data == [{"name": "a", "port": group["a"].port, "running": True, "error": ""}]
