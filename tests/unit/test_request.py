"""
Unit tests for HTTP request parsing.
"""

import pytest

from debughttp.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_query_string,
    parse_request,
    percent_decode,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_status_request(self):
        """A plain GET parses to method, path, version and an empty body."""
        request = parse_request(b"GET /status HTTP/1.1\r\nHost: x\r\n\r\n")

        assert request.method == "GET"
        assert request.path == "/status"
        assert request.version == "HTTP/1.1"
        assert request.body == b""
        assert request.query_params == {}

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/api/cpu"
        assert request.query_string == "format=hex&page=2"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Header names are stored lowercase and looked up case-insensitively."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:65503"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.get_header("ACCEPT") == "application/json"
        assert request.has_header("User-Agent")
        assert not request.has_header("Cookie")
        assert request.get_header("Cookie") == ""

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = parse_request(sample_get_request)

        assert request.get_query("format") == "hex"
        assert request.get_query("page") == "2"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"
        assert request.has_query("page")

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Body is delimited by Content-Length."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.content_type == "application/json"
        assert request.content_length == len(request.body)
        assert request.body == b'{"address": "C600", "length": 16}'

    def test_body_ignored_without_content_length(self):
        """Bytes after the blank line are not a body unless declared."""
        request = parse_request(b"POST /x HTTP/1.1\r\n\r\nstray")

        assert request.body == b""

    def test_truncated_body_taken_as_is(self):
        """A body shorter than declared is used best-effort."""
        request = parse_request(b"POST /x HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")

        assert request.body == b"abc"

    def test_lf_only_line_endings(self):
        """Bare LF line endings are accepted."""
        request = parse_request(b"GET /lf HTTP/1.0\nHost: a\n\n")

        assert request.path == "/lf"
        assert request.version == "HTTP/1.0"
        assert request.host == "a"

    def test_missing_blank_line_parses_headers(self):
        """Input with no blank line is headers-only."""
        request = parse_request(b"GET /partial HTTP/1.1\r\nHost: a")

        assert request.path == "/partial"
        assert request.host == "a"

    def test_missing_version_is_http09(self):
        """A two-token request line is HTTP/0.9."""
        request = parse_request(b"GET /old\r\n\r\n")

        assert request.version == "HTTP/0.9"

    def test_duplicate_headers_last_wins(self):
        """The last value of a repeated header is kept."""
        raw = b"GET / HTTP/1.1\r\nX-Mode: a\r\nx-mode: b\r\n\r\n"

        assert parse_request(raw).get_header("X-Mode") == "b"

    def test_header_whitespace_trimmed(self):
        """Names and values are trimmed; lines without a colon are skipped."""
        raw = b"GET / HTTP/1.1\r\n  X-Pad  :   value  \r\nnot a header\r\n\r\n"
        request = parse_request(raw)

        assert request.headers == {"x-pad": "value"}

    def test_header_value_with_colon(self):
        """Only the first colon separates name from value."""
        request = parse_request(b"GET / HTTP/1.1\r\nHost: localhost:8080\r\n\r\n")

        assert request.host == "localhost:8080"

    @pytest.mark.parametrize("method", ["PURGE", "PROPFIND", "BREW", "get"])
    def test_any_method_token_accepted(self, method):
        """Method tokens outside the usual set reach the handler as sent."""
        raw = f"{method} /cache HTTP/1.1\r\nHost: x\r\n\r\n".encode()

        request = parse_request(raw)

        assert request.method == method
        assert request.path == "/cache"
        assert request.host == "x"

    @pytest.mark.parametrize("version", ["HTTP/1.2", "HTTP/2.0", "FOO"])
    def test_any_version_token_accepted(self, version):
        """Version tokens are recorded, not validated."""
        request = parse_request(f"GET /status {version}\r\n\r\n".encode())

        assert request.version == version
        assert request.path == "/status"

    def test_parse_invalid_request_line(self):
        """A single-token request line is malformed."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET\r\nHost: test\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_parse_empty_request(self):
        """Empty input is a 400."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"")

        assert exc_info.value.status_code == 400

    def test_parse_invalid_content_length(self):
        """A non-numeric Content-Length is a 400."""
        with pytest.raises(HTTPParseError):
            parse_request(b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\nabc")

    def test_empty_path_rejected(self):
        """A target that is only a query string has no path."""
        with pytest.raises(HTTPParseError):
            parse_request(b"GET ?a=1 HTTP/1.1\r\n\r\n")

    def test_oversized_input_truncated(self):
        """Data past the size limit is ignored, not rejected."""
        raw = b"POST /big HTTP/1.1\r\nContent-Length: 100\r\n\r\n" + b"x" * 100
        parser = RequestParser(max_request_size=60)

        request = parser.parse(raw)

        assert request.path == "/big"
        assert len(request.body) < 100


class TestPercentDecoding:
    """Tests for path and query decoding."""

    def test_path_is_decoded(self):
        """%XX sequences in the path are decoded."""
        request = parse_request(b"GET /mem%20dump/%C3%A9 HTTP/1.1\r\n\r\n")

        assert request.path == "/mem dump/é"

    def test_plus_is_literal_in_path(self):
        """'+' stays a plus sign in the path."""
        request = parse_request(b"GET /a+b HTTP/1.1\r\n\r\n")

        assert request.path == "/a+b"

    def test_plus_is_space_in_query(self):
        """'+' decodes to space in query keys and values."""
        request = parse_request(b"GET /search?q=hello+world&my+key=x%2By HTTP/1.1\r\n\r\n")

        assert request.get_query("q") == "hello world"
        assert request.get_query("my key") == "x+y"

    def test_decoding_already_decoded_text(self):
        """Decoding text without escapes leaves it unchanged."""
        text = "/plain/path"

        assert percent_decode(percent_decode(text)) == text

    def test_non_utf8_escape_keeps_byte(self):
        """Undecodable escapes survive and encode back to the original byte."""
        request = parse_request(b"GET /mem/%FF%C3%A9?raw=%FE HTTP/1.1\r\n\r\n")

        assert request.path == "/mem/\udcffé"
        assert request.path.encode("utf-8", errors="surrogateescape") == b"/mem/\xff\xc3\xa9"
        assert request.get_query("raw").encode("utf-8", errors="surrogateescape") == b"\xfe"

    def test_malformed_escape_left_alone(self):
        """An incomplete escape is not an error."""
        assert percent_decode("100%") == "100%"
        assert percent_decode("%zz") == "%zz"


class TestQueryString:
    """Tests for parse_query_string."""

    def test_key_without_value(self):
        """A bare key maps to the empty string."""
        assert parse_query_string("pretty&page=1") == {"pretty": "", "page": "1"}

    def test_last_value_wins(self):
        """Repeated keys keep the last value."""
        assert parse_query_string("a=1&a=2") == {"a": "2"}

    def test_empty_pairs_skipped(self):
        """Empty segments are ignored."""
        assert parse_query_string("&&a=1&") == {"a": "1"}

    def test_value_with_equals(self):
        """Only the first '=' splits key from value."""
        assert parse_query_string("expr=a=b") == {"expr": "a=b"}


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_request_is_immutable(self):
        """Requests can't be modified after construction."""
        request = HTTPRequest(method="GET", path="/")

        with pytest.raises(AttributeError):
            request.path = "/other"
        with pytest.raises(TypeError):
            request.headers["x"] = "y"

    def test_direct_construction_normalizes_headers(self):
        """Header names given to the constructor are lowercased."""
        request = HTTPRequest(method="GET", path="/", headers={"Content-Type": "text/html"})

        assert request.get_header("content-type") == "text/html"
        assert request.content_type == "text/html"

    def test_content_length_defaults_to_zero(self):
        """Missing or invalid Content-Length reads as 0."""
        assert HTTPRequest(method="GET", path="/").content_length == 0
        assert HTTPRequest(
            method="GET", path="/", headers={"content-length": "abc"}
        ).content_length == 0
