"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes echosite can emit, with their RFC 7231 reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK            - GET /, /about, /favicon.svg           │
    │        │ 201 Created       - POST echo accepted                    │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request   - Malformed request line or JSON body   │
    │        │ 404 Not Found     - Unknown path, missing favicon asset   │
    │        │ 405 Method Not Allowed - Anything but GET and POST        │
    │        │ 408 Request Timeout    - Client went quiet mid-request    │
    │        │ 413 Payload Too Large  - Body over max_body_size          │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Error     - Handler blew up, asset unreadable│
    │        │ 503 Service Unavailable - Worker queue is full            │
    │        │ 505 HTTP Version Not Supported                            │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.CREATED == 201
        True
        >>> HTTPStatus.CREATED.phrase
        'Created'
    """

    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    LENGTH_REQUIRED = 411
    PAYLOAD_TOO_LARGE = 413
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 405 Method Not Allowed
                     ─── ──────────────────
                      │          │
                      │          └── phrase
                      └───────────── status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """4xx or 5xx."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.LENGTH_REQUIRED: "Length Required",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
