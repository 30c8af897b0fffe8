"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses and serializes them for the socket.

=============================================================================
RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTP/1.1 201 Created\r\n                     ← status line          │
    │  Content-Type: application/json; charset=utf-8\r\n                   │
    │  Content-Length: 47\r\n                       ← filled in by finish()│
    │  Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n      ← filled in by finish()│
    │  Server: echosite/1.0\r\n                     ← filled in by finish()│
    │  \r\n                                                                │
    │  {"message": "Datos recibidos", "data": {"a": 1}}                    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ONE RESPONSE, SENT ONCE
=============================================================================

A handler builds an HTTPResponse (usually through ResponseBuilder) and hands
it back. The connection calls ``finish()`` exactly once to get the wire bytes.
From then on the response is sealed:

    building ──set_header / set_body──► building ──finish()──► sent
                                                                 │
                         set_header / set_body / finish() ───────┴──► ResponseAlreadySent

The status is a constructor field with a default, so it is always set before
the body is finalized.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import json

from .status_codes import HTTPStatus
from .mime_types import get_content_type


DEFAULT_SERVER_NAME = "echosite/1.0"


class ResponseAlreadySent(RuntimeError):
    """Raised when a response is touched after ``finish()``."""


@dataclass
class HTTPResponse:
    """
    An HTTP response on its way to the client.

    Plain data plus a seal. Use ResponseBuilder or the helper functions at
    the bottom of this module rather than filling the fields by hand.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"
    _sent: bool = field(default=False, repr=False, compare=False)

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def is_sent(self) -> bool:
        return self._sent

    def _check_open(self) -> None:
        if self._sent:
            raise ResponseAlreadySent(
                f"{self.status_line} has already been sent"
            )

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header; chainable."""
        self._check_open()
        self.headers[name] = value
        return self

    def set_content_type(self, content_type: str) -> "HTTPResponse":
        return self.set_header("Content-Type", content_type)

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body; str is encoded as UTF-8."""
        self._check_open()
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def finish(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Seal the response and serialize it.

        Adds Content-Length, Date and Server unless the handler already set
        them. Can only be called once.

        Args:
            server_name: Value for the Server header.

        Returns:
            Status line, headers, blank line and body, ready for sendall().

        Raises:
            ResponseAlreadySent: finish() was already called.
        """
        self._check_open()
        self._sent = True

        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        head = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return head + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .json({"message": "Datos recibidos", "data": data})
            .build())

    Every method but build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Raw body. Prefer text(), html() or json() for typed content."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def html(self, html: str) -> "ResponseBuilder":
        self._body = html.encode("utf-8")
        self._headers["Content-Type"] = "text/html; charset=utf-8"
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        JSON body.

        ensure_ascii=False keeps "Método" and "inválido" readable on the wire
        instead of \\u00e9 escapes; the body is UTF-8 either way.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(
            data, indent=indent, ensure_ascii=False, allow_nan=False
        ).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def file(self, content: bytes, filename: str) -> "ResponseBuilder":
        """File body with Content-Type guessed from the filename."""
        self._body = content
        self._headers["Content-Type"] = get_content_type(filename)
        return self

    def cache(self, max_age: int = 3600) -> "ResponseBuilder":
        self._headers["Cache-Control"] = f"public, max-age={max_age}"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date, always in GMT.

        Sun, 18 Oct 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    dt = dt.astimezone(timezone.utc)
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE CONSTRUCTORS
# =============================================================================

def created(body: Any, location: Optional[str] = None) -> HTTPResponse:
    """201 Created with a JSON body."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED).json(body)
    if location:
        builder.header("Location", location)
    return builder.build()


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """JSON error body: {"error": message}."""
    return ResponseBuilder().status(status).json({"error": message}).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    """404 with a plain-text body."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).text(message).build()


def method_not_allowed(allowed_methods: list[str], message: str = "Método no permitido") -> HTTPResponse:
    """
    405 with a plain-text body.

    RFC 7231 requires the Allow header listing what the resource does accept.
    """
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .text(message)
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500. Keep the message generic; details belong in the log."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
