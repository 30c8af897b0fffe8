"""
=============================================================================
STATIC RESPONDER
=============================================================================

Answers every GET request from a fixed table of paths.

    ┌──────────────────┬────────┬────────────────────────────────────────┐
    │ Path             │ Status │ Body                                   │
    ├──────────────────┼────────┼────────────────────────────────────────┤
    │ /                │ 200    │ home page (pre-rendered HTML)          │
    │ /about           │ 200    │ about page (pre-rendered HTML)         │
    │ /favicon.svg     │ 200    │ <asset_dir>/favicon.svg, read per hit  │
    │ anything else    │ 404    │ "Not Found"                            │
    └──────────────────┴────────┴────────────────────────────────────────┘

The favicon is the only path that touches the filesystem. It is read on every
request rather than cached, so replacing the file on disk takes effect
immediately and a missing file is noticed (and logged) every time:

    FileNotFoundError   → 404 Not Found      (WARNING in the log)
    any other OSError   → 500                (ERROR in the log)

=============================================================================
"""

from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping

from ..context import AppContext
from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder, HTTPStatus,
    not_found, internal_error,
)
from .pages import render_home, render_about


FAVICON_NAME = "favicon.svg"


class StaticResponder:
    """
    GET handler for the fixed page and asset table.

    Usage:
        responder = StaticResponder(AppContext.from_config(config))
        response = responder.handle(request)
    """

    def __init__(self, context: AppContext, cache_max_age: int = 3600):
        """
        Args:
            context: Application context; supplies asset_dir and the logger.
            cache_max_age: Cache-Control max-age for the favicon, in seconds.
        """
        self.context = context
        self.cache_max_age = cache_max_age
        self._logger = context.logger

        # Rendered once; every request gets the same bytes.
        self._home_html = render_home()
        self._about_html = render_about()

        self._routes: Mapping[str, Callable[[HTTPRequest], HTTPResponse]] = MappingProxyType({
            "/": self._home,
            "/about": self._about,
            "/" + FAVICON_NAME: self._favicon,
        })

    @property
    def paths(self) -> list[str]:
        return list(self._routes)

    @property
    def favicon_path(self) -> Path:
        return self.context.asset_dir / FAVICON_NAME

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Look the path up in the table; 404 when it is not there."""
        route = self._routes.get(request.path)
        if route is None:
            return not_found()
        return route(request)

    def _home(self, request: HTTPRequest) -> HTTPResponse:
        return ResponseBuilder().html(self._home_html).build()

    def _about(self, request: HTTPRequest) -> HTTPResponse:
        return ResponseBuilder().html(self._about_html).build()

    def _favicon(self, request: HTTPRequest) -> HTTPResponse:
        path = self.favicon_path
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            self._logger.warning(f"Favicon asset missing: {path}")
            return not_found()
        except OSError as e:
            self._logger.error(f"Error reading favicon {path}: {e}")
            return internal_error("Failed to read asset")

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .file(content, path.name)
            .cache(self.cache_max_age)
            .build())
