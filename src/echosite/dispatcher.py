"""
=============================================================================
METHOD DISPATCHER
=============================================================================

Picks the one handler that answers a request.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         DISPATCH FLOW                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTPRequest                                                        │
    │        │                                                             │
    │        ▼                                                             │
    │   method in route table? ── no ──► 405 "Método no permitido"        │
    │        │ yes                        (Allow: GET, POST)               │
    │        ▼                                                             │
    │   path starts with "/"?  ── no ──► 404 "Not Found"                  │
    │        │ yes                                                         │
    │        ▼                                                             │
    │   GET  ──► StaticResponder.handle                                   │
    │   POST ──► EchoHandler.handle                                       │
    │        │                                                             │
    │        ▼                                                             │
    │   HTTPResponse  (handler raised? → logged, 500)                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The route table is built in __init__ and wrapped read-only. Dispatch keeps no
state between requests, so workers call it concurrently without locking.

=============================================================================
"""

from types import MappingProxyType
from typing import Callable, Mapping

from .context import AppContext
from .handlers import StaticResponder, EchoHandler
from .http.request import HTTPRequest
from .http.response import (
    HTTPResponse,
    not_found, method_not_allowed, internal_error,
)


Handler = Callable[[HTTPRequest], HTTPResponse]


class Dispatcher:
    """
    Routes a request by method to the static responder or the echo handler.

    Usage:
        dispatcher = Dispatcher(AppContext.from_config(config))
        response = dispatcher.dispatch(request)
    """

    def __init__(self, context: AppContext):
        self.context = context
        self._logger = context.logger

        self.static = StaticResponder(context)
        self.echo = EchoHandler(context)

        self._routes: Mapping[str, Handler] = MappingProxyType({
            "GET": self.static.handle,
            "POST": self.echo.handle,
        })

    @property
    def allowed_methods(self) -> list[str]:
        return list(self._routes)

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Answer a request with exactly one response.

        Never raises for a handler failure: the exception is logged with its
        traceback and the client gets a 500.
        """
        handler = self._routes.get(request.method)
        if handler is None:
            return method_not_allowed(self.allowed_methods)

        if not request.path.startswith("/"):
            return not_found()

        try:
            return handler(request)
        except Exception as e:
            self._logger.exception(
                f"Handler error for {request.method} {request.path}: {e}"
            )
            return internal_error()

    __call__ = dispatch
