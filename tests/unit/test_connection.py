"""
Unit tests for Connection, over a local socket pair.
"""

import socket

import pytest

from echosite.core.connection import Connection, ConnectionState
from echosite.http.request import HTTPParseError
from echosite.http.response import HTTPResponse, ResponseAlreadySent
from echosite.http.status_codes import HTTPStatus


@pytest.fixture
def pair():
    server_sock, client_sock = socket.socketpair()
    yield server_sock, client_sock
    server_sock.close()
    client_sock.close()


def make_connection(server_sock, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 2.0)
    kwargs.setdefault("keep_alive_timeout", 0.2)
    return Connection(socket=server_sock, address=("127.0.0.1", 5555), **kwargs)


class TestReadRequest:

    def test_get_without_body(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        client_sock.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        assert conn.read_request() == b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.state == ConnectionState.DISPATCHED
        assert conn.requests_handled == 1

    def test_body_in_pieces(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, buffer_size=4)
        raw = b'POST / HTTP/1.1\r\nContent-Length: 7\r\n\r\n{"a":1}'
        client_sock.sendall(raw)

        assert conn.read_request() == raw

    def test_pipelined_requests_split(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        first = b"POST / HTTP/1.1\r\nContent-Length: 2\r\n\r\n{}"
        second = b"GET /about HTTP/1.1\r\n\r\n"
        client_sock.sendall(first + second)

        assert conn.read_request() == first
        assert conn.read_request() == second

    def test_chunked_body(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        raw = (
            b"POST / HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"7\r\n{\"a\":1}\r\n0\r\n\r\n"
        )
        client_sock.sendall(raw)

        assert conn.read_request() == raw

    def test_declared_body_over_limit(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, max_body_size=10)
        client_sock.sendall(b"POST / HTTP/1.1\r\nContent-Length: 11\r\n\r\n")

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()

        assert exc_info.value.status_code == HTTPStatus.PAYLOAD_TOO_LARGE

    def test_chunked_body_over_limit(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, max_body_size=4)
        client_sock.sendall(
            b"POST / HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"5\r\nhello\r\n0\r\n\r\n"
        )

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()

        assert exc_info.value.status_code == HTTPStatus.PAYLOAD_TOO_LARGE

    def test_headers_too_large(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, max_header_size=1024)
        client_sock.sendall(b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 2048)

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()

        assert exc_info.value.status_code == HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE

    def test_invalid_content_length(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        client_sock.sendall(b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\n")

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()

        assert exc_info.value.status_code == 400

    def test_client_closed(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        client_sock.close()

        assert conn.read_request() is None

    def test_first_request_timeout(self, pair):
        server_sock, _ = pair
        conn = make_connection(server_sock, timeout=0.1)

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_keep_alive_idle_returns_none(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        client_sock.sendall(b"GET / HTTP/1.1\r\n\r\n")
        conn.read_request()

        assert conn.read_request() is None


class TestSendAndClose:

    def test_send_response(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        response = HTTPResponse(status=HTTPStatus.CREATED, body=b"{}")

        assert conn.send_response(response) is True
        assert conn.state == ConnectionState.RESPONDED
        assert client_sock.recv(4096).startswith(b"HTTP/1.1 201 Created\r\n")

    def test_response_sent_once(self, pair):
        server_sock, _ = pair
        conn = make_connection(server_sock)
        response = HTTPResponse(body=b"x")
        conn.send_response(response)

        with pytest.raises(ResponseAlreadySent):
            conn.send_response(response)

    def test_send_to_closed_peer(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        client_sock.close()

        # The first send may still be buffered by the kernel; keep going
        # until the broken pipe surfaces.
        results = [conn.send_response(HTTPResponse(body=b"x" * 65536)) for _ in range(20)]
        assert results[-1] is False

    def test_close_idempotent(self, pair):
        server_sock, client_sock = pair
        client_sock.close()

        with make_connection(server_sock) as conn:
            pass

        assert conn.state == ConnectionState.CLOSED
        conn.close()
        assert conn.state == ConnectionState.CLOSED
