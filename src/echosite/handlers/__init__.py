"""
Request handlers.

    StaticResponder   GET  → pages and the favicon
    EchoHandler       POST → JSON echo

Both are plain callables of type ``(HTTPRequest) -> HTTPResponse`` built from
an AppContext; the dispatcher picks one per request.
"""

from .static import StaticResponder
from .echo import EchoHandler, envelope, ACK_MESSAGE

__all__ = [
    "StaticResponder",
    "EchoHandler",
    "envelope",
    "ACK_MESSAGE",
]
