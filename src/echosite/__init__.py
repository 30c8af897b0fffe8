"""
=============================================================================
ECHOSITE
=============================================================================

A small HTTP/1.1 server on raw sockets and a worker thread pool.

    GET  /              home page (HTML)
    GET  /about         about page (HTML)
    GET  /favicon.svg   site icon (SVG)
    GET  anything else  404 "Not Found"
    POST any path       201 {"message": "Datos recibidos", "data": <your JSON>}
    other methods       405 "Método no permitido"

    from echosite import HTTPServer, ServerConfig

    HTTPServer(ServerConfig(port=3000)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .context import AppContext
from .server import HTTPServer, ServerError, create_app

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "ServerError",
    "AppContext",
    "create_app",
    "__version__",
]
