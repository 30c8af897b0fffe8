"""
Unit tests for HTTP request parsing.
"""

import dataclasses

import pytest

from echosite.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    decode_chunked,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/about"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.host == "localhost:3000"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "text/html"
        assert request.is_keep_alive is True

    def test_query_string_stripped_from_path(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.path == "/about"
        assert request.get_query("lang") == "es"
        assert request.get_query("ref") == "nav"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/datos"
        assert request.content_type == "application/json"
        assert request.json == {"nombre": "Ana", "edad": 30}

    def test_percent_decoded_path(self):
        raw = b"GET /acerca%20de?q=hola%20mundo HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/acerca de"
        assert request.get_query("q") == "hola mundo"

    @pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH", "OPTIONS", "BREW"])
    def test_any_method_token_accepted(self, method):
        """Unknown methods are left to the dispatcher, which answers 405."""
        raw = f"{method} / HTTP/1.1\r\nHost: test\r\n\r\n".encode()
        assert parse_request(raw).method == method

    def test_parse_invalid_request_line(self):
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_missing_header_terminator(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

        assert exc_info.value.status_code == 400

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")

        assert exc_info.value.status_code == 505

    def test_parse_missing_headers(self):
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_asterisk_target_kept_raw(self):
        request = parse_request(b"OPTIONS * HTTP/1.1\r\n\r\n")
        assert request.path == "*"

    def test_absolute_form_reduced_to_path(self):
        request = parse_request(b"GET http://localhost:3000/about?x=1 HTTP/1.1\r\n\r\n")

        assert request.path == "/about"
        assert request.get_query("x") == "1"

    def test_dots_in_path_left_to_routing(self):
        request = parse_request(b"POST /v1..2 HTTP/1.1\r\nHost: test\r\n\r\n")

        assert request.path == "/v1..2"

    def test_parse_request_too_large(self):
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        # HTTP/1.0 (Connection: close by default)
        request_10 = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        request_10_ka = parse_request(b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n")
        assert request_10_ka.is_keep_alive is True

        # HTTP/1.1 (keep-alive by default)
        request_11 = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

        request_11_close = parse_request(b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n")
        assert request_11_close.is_keep_alive is False

    def test_content_length_handling(self):
        body = b"test body"
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
        ) + body

        request = parse_request(raw)
        assert request.content_length == 9
        assert request.body == body

    def test_body_cut_at_content_length(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 2\r\n\r\n{}GET / HTTP/1.1\r\n\r\n"
        assert parse_request(raw).body == b"{}"

    def test_incomplete_body(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\n{}"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_invalid_content_length(self, value):
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_chunked_body_decoded(self):
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"\r\n"
            b"4\r\n{\"a\"\r\n"
            b"3\r\n:1}\r\n"
            b"0\r\n"
            b"\r\n"
        )
        request = parse_request(raw)

        assert request.body == b'{"a":1}'
        assert request.json == {"a": 1}

    def test_case_insensitive_headers(self):
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = parse_request(raw)

        assert request.content_type == "text/html"
        assert request.get_header("Content-Type") == "text/html"
        assert request.get_header("content-type") == "text/html"

    def test_repeated_and_folded_headers(self):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: application/json\r\n"
            b"X-Long: first\r\n"
            b"  second\r\n"
            b"\r\n"
        )
        request = parse_request(raw)

        assert request.headers["accept"] == "text/html, application/json"
        assert request.headers["x-long"] == "first second"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_repeated_query_first_value(self):
        request = HTTPRequest(
            method="GET",
            path="/",
            query_params={"tags": ["python", "http", "server"]},
        )

        assert request.get_query("tags") == "python"  # First value

    def test_frozen(self):
        request = HTTPRequest(method="GET", path="/")

        with pytest.raises(dataclasses.FrozenInstanceError):
            request.path = "/about"

    def test_json_empty_body_is_none(self):
        assert HTTPRequest(method="POST", path="/").json is None

    def test_json_invalid(self):
        request = HTTPRequest(method="POST", path="/", body=b"not-json")

        with pytest.raises(HTTPParseError) as exc_info:
            request.json

        assert exc_info.value.status_code == 400

    def test_json_invalid_utf8(self):
        request = HTTPRequest(method="POST", path="/", body=b'"\xff"')

        with pytest.raises(HTTPParseError):
            request.json

    @pytest.mark.parametrize("body", [
        b"NaN",
        b"Infinity",
        b"-Infinity",
        b'{"x": NaN}',
        b"[1e999]",
        b"-1e400",
    ])
    def test_json_non_finite_numbers_rejected(self, body: bytes):
        request = HTTPRequest(method="POST", path="/", body=body)

        with pytest.raises(HTTPParseError) as exc_info:
            request.json

        assert exc_info.value.status_code == 400

    def test_json_deep_nesting_rejected(self):
        request = HTTPRequest(method="POST", path="/", body=b"[" * 100000)

        with pytest.raises(HTTPParseError) as exc_info:
            request.json

        assert exc_info.value.status_code == 400

    def test_json_large_finite_numbers_kept(self):
        request = HTTPRequest(method="POST", path="/", body=b"[1e308, -2.5, 10000000000000000000000]")
        assert request.json == [1e308, -2.5, 10 ** 22]

    def test_content_type_parameters_ignored(self):
        request = HTTPRequest(
            method="POST", path="/",
            headers={"content-type": "Application/JSON; charset=utf-8"},
        )
        assert request.content_type == "application/json"


class TestDecodeChunked:
    """Tests for chunked transfer decoding."""

    def test_complete(self):
        data = b"5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n"
        assert decode_chunked(data) == (b"hello world", len(data))

    def test_extension_and_trailer(self):
        data = b"5;name=value\r\nhello\r\n0\r\nX-Trailer: yes\r\n\r\nNEXT"
        body, consumed = decode_chunked(data)

        assert body == b"hello"
        assert data[consumed:] == b"NEXT"

    @pytest.mark.parametrize("partial", [
        b"",
        b"5\r\nhel",
        b"5\r\nhello\r\n",
        b"5\r\nhello\r\n0\r\n",
    ])
    def test_incomplete_returns_none(self, partial):
        assert decode_chunked(partial) is None

    def test_bad_size(self):
        with pytest.raises(HTTPParseError):
            decode_chunked(b"zz\r\nhello\r\n0\r\n\r\n")

    def test_missing_crlf_after_data(self):
        with pytest.raises(HTTPParseError):
            decode_chunked(b"5\r\nhelloXX0\r\n\r\n")
