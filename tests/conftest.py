"""
pytest configuration and fixtures.
"""

import http.client
import json
import socket
import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from echosite import HTTPServer, ServerConfig
from echosite.context import AppContext


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /about?lang=es&ref=nav HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"nombre": "Ana", "edad": 30}'
    return (
        b"POST /datos HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        shutdown_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def context(config: ServerConfig) -> AppContext:
    return AppContext.from_config(config)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class LiveServer:
    """Runs an HTTPServer's accept loop in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self.host = "127.0.0.1"
        self.port: Optional[int] = None
        self._thread: Optional[threading.Thread] = None

    def start(self):
        _, self.port = self.server.start()
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        self.server.close()

    def request(
        self,
        method: str,
        path: str,
        body: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> http.client.HTTPResponse:
        """One request on a fresh connection; the response body is read before returning."""
        conn = http.client.HTTPConnection(self.host, self.port, timeout=5)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            response.body = response.read()
            return response
        finally:
            conn.close()

    def get(self, path: str) -> http.client.HTTPResponse:
        return self.request("GET", path)

    def post_json(self, path: str, data) -> http.client.HTTPResponse:
        return self.request(
            "POST", path,
            body=json.dumps(data).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

    def raw(self, data: bytes) -> bytes:
        """Send raw bytes, return everything the server sends back until it closes."""
        with socket.create_connection((self.host, self.port), timeout=5) as s:
            s.sendall(data)
            chunks = []
            while True:
                chunk = s.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def live_server(config: ServerConfig) -> Generator[LiveServer, None, None]:
    """A running server on an OS-assigned port."""
    live = LiveServer(HTTPServer(config))
    live.start()

    yield live

    live.stop()


@pytest.fixture
def make_live_server() -> Generator:
    """Factory for running servers with a custom config; all are stopped afterwards."""
    started: list[LiveServer] = []

    def factory(config: ServerConfig) -> LiveServer:
        live = LiveServer(HTTPServer(config))
        live.start()
        started.append(live)
        return live

    yield factory

    for live in started:
        live.stop()
