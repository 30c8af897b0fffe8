"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of one HTTP/1.1 request into an immutable HTTPRequest.

=============================================================================
WHAT ARRIVES ON THE SOCKET
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  POST /echo?debug=1 HTTP/1.1\r\n        ← request line               │
    │  Host: localhost:3000\r\n               ┐                            │
    │  Content-Type: application/json\r\n     ├ headers                    │
    │  Content-Length: 7\r\n                  ┘                            │
    │  \r\n                                   ← blank line                 │
    │  {"a":1}                                ← body (Content-Length bytes)│
    └─────────────────────────────────────────────────────────────────────┘

The body is framed one of two ways:

    Content-Length: N             exactly N bytes follow the blank line
    Transfer-Encoding: chunked    hex-size\r\n data\r\n ... 0\r\n \r\n

Clients such as ``curl -T -`` and browsers streaming a fetch() body use the
chunked form, so both are accepted. The connection layer uses
``decode_chunked`` to know when a chunked body is complete; the parser uses it
again to strip the framing.

=============================================================================
ERRORS
=============================================================================

Everything that goes wrong here raises HTTPParseError carrying the status the
client should see:

    400  bad request line, bad header framing, bad chunk
    413  request larger than the configured limit
    505  anything other than HTTP/1.0 or HTTP/1.1

Unknown *methods* are NOT a parse error. Any RFC 7230 token is accepted so
the dispatcher can answer 405 with its own body.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple
from urllib.parse import parse_qs, urlparse, unquote
import re
import json
import math


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the HTTP status the server should answer with, so the connection
    loop can turn it straight into an error response.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request.

    Frozen: once the parser hands it over, nothing downstream may change it.
    It lives for one exchange and is dropped after the response is sent.

    Attributes:
        method:         Request method token, exactly as sent ("GET", "POST")
        path:           Percent-decoded path WITHOUT the query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header values keyed by lowercase name
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Body bytes, chunked framing already removed
        client_address: (ip, port) of the peer, for logging
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple = ("", 0)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters: "application/json; charset=utf-8" → "application/json"."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def json(self) -> Any:
        """
        The body parsed as strict JSON.

        Returns None for an empty body. Not cached: the request is frozen and
        the only caller (the echo handler) reads it once.

        NaN, Infinity and numbers that overflow a float are rejected, since
        they cannot be written back out as valid JSON.

        Raises:
            HTTPParseError: body is not UTF-8, not valid JSON, or nested too deep.
        """
        if not self.body:
            return None
        try:
            return json.loads(
                self.body.decode("utf-8"),
                parse_constant=_reject_constant,
                parse_float=_finite_float,
            )
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are ValueErrors too
            raise HTTPParseError(str(e))
        except RecursionError:
            raise HTTPParseError("nesting too deep")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client expects the connection to stay open.

            HTTP/1.1  keep-alive unless "Connection: close"
            HTTP/1.0  close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.query_params.get(name, [])
        return values[0] if values else default


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if math.isinf(value):
        raise ValueError(f"number out of range: {text[:50]}")
    return value


def decode_chunked(data: bytes) -> Optional[Tuple[bytes, int]]:
    """
    Decode a chunked transfer-encoded body.

        7\\r\\n            ← chunk size in hex (extensions after ";" ignored)
        {"a":1}\\r\\n      ← chunk data
        0\\r\\n            ← last chunk
        \\r\\n             ← end of (empty) trailer section

    Args:
        data: Bytes starting right after the header/body separator.

    Returns:
        (body, consumed) once the terminating chunk and trailers are present,
        where consumed is how many bytes of ``data`` the message used.
        None if more bytes are needed.

    Raises:
        HTTPParseError: malformed chunk size or missing CRLF after chunk data.
    """
    body = bytearray()
    pos = 0

    while True:
        line_end = data.find(b"\r\n", pos)
        if line_end == -1:
            return None

        size_field = data[pos:line_end].split(b";", 1)[0].strip()
        try:
            size = int(size_field, 16)
        except ValueError:
            raise HTTPParseError(f"Invalid chunk size: {size_field[:16]!r}")
        if size < 0:
            raise HTTPParseError(f"Invalid chunk size: {size_field[:16]!r}")

        pos = line_end + 2

        if size == 0:
            # Trailer section: header lines until an empty one
            while True:
                line_end = data.find(b"\r\n", pos)
                if line_end == -1:
                    return None
                if line_end == pos:
                    return bytes(body), line_end + 2
                pos = line_end + 2

        if len(data) < pos + size + 2:
            return None

        body += data[pos:pos + size]
        if data[pos + size:pos + size + 2] != b"\r\n":
            raise HTTPParseError("Malformed chunk: missing CRLF after data")
        pos += size + 2


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

        Raw bytes
            │
            ├──► size check                  413 if over max_request_size
            ├──► split at \\r\\n\\r\\n           400 if no terminator
            ├──► request line                400 / 505
            ├──► headers                     lowercase names, folded lines joined
            ├──► body                        Content-Length or chunked
            ▼
        HTTPRequest

    One parser is shared by all workers; it holds no per-request state.
    """

    # method SP request-target SP HTTP-version
    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) ([^ ]+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw request bytes (headers, blank line, body).
            client_address: Peer (ip, port), copied onto the request.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: The request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        raw_body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])
        body = self._extract_body(headers, raw_body)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:100]!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        # Origin-form ("/about?x=1") and absolute-form ("http://host/about")
        # both reduce to a path here. Anything else ("*") keeps its raw text
        # and is left for the dispatcher to reject.
        parsed = urlparse(target)
        path = unquote(parsed.path) if target != "*" else target
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path or "/", query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines.

        - Names are lowercased (HTTP header names are case-insensitive).
        - Obsolete line folding (leading whitespace) continues the previous value.
        - Repeated headers are joined with ", ".
        - Lines without a colon are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _extract_body(self, headers: Dict[str, str], raw_body: bytes) -> bytes:
        if "chunked" in headers.get("transfer-encoding", "").lower():
            decoded = decode_chunked(raw_body)
            if decoded is None:
                raise HTTPParseError("Incomplete chunked body")
            return decoded[0]

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers['content-length']!r}"
            )
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")

        if len(raw_body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(raw_body)}"
            )
        return raw_body[:content_length]


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse a request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
