"""
JSON echo handler.

Answers every POST by parsing the body as JSON and returning it inside an
acknowledgment envelope:

    POST /anything            HTTP/1.1 201 Created
    {"a": 1}          ──►     {"message": "Datos recibidos", "data": {"a": 1}}

The body has already been read in full (and capped at max_body_size) by the
connection before this handler runs. A body that is empty, not UTF-8 or not
JSON gets a 400; the worker carries on with the next request.
"""

from typing import Any

from ..context import AppContext
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, created, bad_request


ACK_MESSAGE = "Datos recibidos"


def envelope(data: Any) -> dict:
    """Wrap echoed data in the acknowledgment body."""
    return {"message": ACK_MESSAGE, "data": data}


class EchoHandler:
    """POST handler that echoes the JSON body back."""

    def __init__(self, context: AppContext):
        self.context = context
        self._logger = context.logger

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        if not request.body:
            return bad_request("JSON inválido: cuerpo vacío")

        try:
            data = request.json
        except HTTPParseError as e:
            self._logger.debug(f"Rejected POST {request.path}: {e}")
            return bad_request(f"JSON inválido: {e}")

        return created(envelope(data))
