"""
Unit tests for request framing on a client connection.
"""

import socket

import pytest

from debughttp.core.connection import Connection, ConnectionState, message_complete


class TestMessageComplete:
    """Tests for message_complete."""

    def test_headers_not_finished(self):
        assert not message_complete(b"GET / HTTP/1.1\r\nHost: x\r\n")

    def test_headers_only(self):
        """Without Content-Length the blank line ends the message."""
        assert message_complete(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")
        assert message_complete(b"GET / HTTP/1.0\n\n")

    def test_waits_for_declared_body(self):
        """Content-Length bytes must follow the blank line."""
        head = b"POST / HTTP/1.1\r\ncontent-length: 5\r\n\r\n"

        assert not message_complete(head + b"hel")
        assert message_complete(head + b"hello")

    def test_last_content_length_wins(self):
        """A repeated Content-Length is read the way the parser reads it."""
        head = b"POST / HTTP/1.1\r\nContent-Length: 1\r\nContent-Length: 5\r\n\r\n"

        assert not message_complete(head + b"ab")
        assert message_complete(head + b"hello")

    def test_unreadable_length_is_complete(self):
        """The parser answers a bad Content-Length, so stop reading."""
        assert message_complete(b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\n")


class TestConnection:
    """Tests for Connection over a socket pair."""

    @pytest.fixture
    def pair(self):
        server, client = socket.socketpair()
        yield server, client
        client.close()
        server.close()

    def test_reads_body_split_by_duplicate_lengths(self, pair):
        """Reading stops once the last declared length has arrived."""
        server, client = pair
        raw = b"POST / HTTP/1.1\r\nContent-Length: 1\r\nContent-Length: 5\r\n\r\nhello"
        client.sendall(raw)

        with Connection(server, ("local", 0), read_timeout=1.0) as conn:
            assert conn.read_request() == raw
            assert conn.bytes_read == len(raw)

        assert conn.state == ConnectionState.CLOSED
