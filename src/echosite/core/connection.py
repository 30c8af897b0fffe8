"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket: buffered reads of whole requests, body size
enforcement, one-shot response sending, and a clean TCP close.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   IDLE ──headers read, body expected──► RECEIVING                   │
    │    │                                        │                        │
    │    │ headers read, no body (GET)            │ body complete          │
    │    ▼                                        ▼                        │
    │   DISPATCHED ◄──────────────────────────────┘                        │
    │    │                                                                 │
    │    │ response sent                                                   │
    │    ▼                                                                 │
    │   RESPONDED ──keep-alive──► IDLE   (nothing of the request kept)    │
    │    │                                                                 │
    │    └──close──► CLOSED                                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
READING A REQUEST
=============================================================================

TCP hands us bytes in arbitrary pieces, so we buffer:

    1. recv() until the buffer holds \\r\\n\\r\\n            (431 past max_header_size)
    2. sniff Content-Length / Transfer-Encoding from the raw headers
    3. Content-Length over max_body_size?              → 413 before reading it
    4. recv() until the body is complete
       - Content-Length: until N bytes are buffered
       - chunked: until decode_chunked() finds the last chunk
         (raw size capped at max_request_size while it grows,
          decoded size checked against max_body_size at the end)
    5. cut exactly one request off the buffer; leftovers (pipelined
       requests) stay for the next call

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..http.request import HTTPParseError, decode_chunked
from ..http.response import HTTPResponse, DEFAULT_SERVER_NAME
from ..http.status_codes import HTTPStatus

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    IDLE = "idle"              # Waiting for (the next) request line and headers
    RECEIVING = "receiving"    # Headers in, body bytes still arriving
    DISPATCHED = "dispatched"  # Request complete, handler running
    RESPONDED = "responded"    # Response sent
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short random identifier used in log lines.
        state: Current ConnectionState.
        requests_handled: Requests read on this connection so far.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.IDLE
    requests_handled: int = 0

    # From ServerConfig
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_header_size: int = 64 * 1024
    max_body_size: int = 1024 * 1024
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    DRAIN_TIMEOUT = 2.0

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The raw request bytes, or None when the client closed the
            connection (or went idle on a kept-alive connection) before
            sending a new request.

        Raises:
            TimeoutError: The client stalled partway through a request, or
                          never sent its first one.
            HTTPParseError: Headers over max_header_size (431), body over
                            max_body_size (413), or unreadable framing (400).
        """
        self.state = ConnectionState.IDLE

        # Subsequent requests on a kept-alive connection get the short timeout.
        # The client already has its answer; if it wants more it asks quickly.
        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                if len(self._buffer) > self.max_header_size:
                    raise HTTPParseError(
                        "Request headers too large",
                        status_code=HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
                    )
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk

            # Back to the full timeout once the client is mid-request
            self.socket.settimeout(self.timeout)

            header_end = self._buffer.find(b"\r\n\r\n")
            if header_end > self.max_header_size:
                raise HTTPParseError(
                    "Request headers too large",
                    status_code=HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
                )
            body_start = header_end + 4

            content_length, chunked = self._body_framing(self._buffer[:header_end])

            if chunked:
                self.state = ConnectionState.RECEIVING
                request_end = self._read_chunked_body(body_start)
            else:
                if content_length > self.max_body_size:
                    raise HTTPParseError(
                        f"Request body too large: {content_length} bytes "
                        f"(limit {self.max_body_size})",
                        status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
                    )
                if content_length:
                    self.state = ConnectionState.RECEIVING
                request_end = self._read_fixed_body(body_start, content_length)

            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.DISPATCHED
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _read_fixed_body(self, body_start: int, content_length: int) -> int:
        while len(self._buffer) - body_start < content_length:
            chunk = self._recv()
            if not chunk:
                break  # Client gave up mid-body; the parser reports it
            self._buffer += chunk
        return min(body_start + content_length, len(self._buffer))

    def _read_chunked_body(self, body_start: int) -> int:
        while True:
            decoded = decode_chunked(self._buffer[body_start:])
            if decoded is not None:
                body, consumed = decoded
                if len(body) > self.max_body_size:
                    raise HTTPParseError(
                        f"Request body too large: {len(body)} bytes "
                        f"(limit {self.max_body_size})",
                        status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
                    )
                return body_start + consumed

            if len(self._buffer) > self.max_request_size:
                raise HTTPParseError(
                    f"Request body too large (limit {self.max_body_size})",
                    status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
                )

            chunk = self._recv()
            if not chunk:
                return len(self._buffer)  # Incomplete; the parser reports it
            self._buffer += chunk

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _body_framing(self, headers: bytes) -> Tuple[int, bool]:
        """
        Content-Length and whether the body is chunked, from raw header bytes.

        Done with a plain scan because the request has not been parsed yet;
        the parser repeats the work properly afterwards.
        """
        content_length = 0
        chunked = False

        for line in headers.decode("latin-1").lower().split("\r\n")[1:]:
            name, _, value = line.partition(":")
            name = name.strip()
            if name == "content-length":
                try:
                    content_length = int(value.strip())
                except ValueError:
                    raise HTTPParseError(f"Invalid Content-Length: {value.strip()!r}")
                if content_length < 0:
                    raise HTTPParseError(f"Invalid Content-Length: {content_length}")
            elif name == "transfer-encoding" and "chunked" in value:
                chunked = True

        return content_length, chunked

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, response: HTTPResponse, server_name: str = DEFAULT_SERVER_NAME) -> bool:
        """
        Seal and send a response.

        ``response.finish()`` runs here and nowhere else, so every response
        goes out exactly once.

        Returns:
            True if the bytes were sent, False if the client is gone.
        """
        data = response.finish(server_name)

        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.state = ConnectionState.RESPONDED
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close gracefully: send FIN, drain what the client still sends, release
        the descriptor. Safe to call twice.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        # Unread input at close() makes the kernel send RST, which can discard
        # the response still in flight (e.g. a 413 for a body we never read).
        deadline = time.monotonic() + self.DRAIN_TIMEOUT
        try:
            self.socket.settimeout(0.5)
            while time.monotonic() < deadline and self.socket.recv(65536):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
