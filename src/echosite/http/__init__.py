"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Bytes in, bytes out. Nothing in this package knows about sockets, threads
or which pages exist.

    request.py       raw bytes → HTTPRequest (RequestParser, decode_chunked)
    response.py      HTTPResponse / ResponseBuilder → raw bytes (finish())
    status_codes.py  HTTPStatus enum with reason phrases
    mime_types.py    file extension → Content-Type

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, decode_chunked
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ResponseAlreadySent,
    created,
    error_response,
    bad_request,
    not_found,
    method_not_allowed,
    internal_error,
)
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "decode_chunked",
    "HTTPResponse",
    "ResponseBuilder",
    "ResponseAlreadySent",
    "created",
    "error_response",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "HTTPStatus",
    "get_mime_type",
    "get_content_type",
]
