"""
Content-Type lookup for the files echosite serves from disk.

Only the static assets shipped with the package go through here (today just
``favicon.svg``), so the table is short. Unknown extensions fall back to
``application/octet-stream``.
"""

from pathlib import Path
from typing import Optional


MIME_TYPES = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".json": "application/json",
    ".txt": "text/plain",
    ".svg": "image/svg+xml",       # SVG is XML, hence +xml
    ".ico": "image/x-icon",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

# Non text/* types that still carry a charset parameter
_TEXTUAL_TYPES = {
    "application/json",
    "image/svg+xml",
}


def get_mime_type(path: str | Path, default: Optional[str] = None) -> str:
    """
    MIME type for a file, from its extension.

        >>> get_mime_type("favicon.svg")
        'image/svg+xml'
        >>> get_mime_type("blob.xyz")
        'application/octet-stream'
    """
    extension = Path(path).suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in _TEXTUAL_TYPES


def get_content_type(path: str | Path, charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for a file.

    Text-based types get a charset parameter, binary ones do not:

        >>> get_content_type("favicon.svg")
        'image/svg+xml; charset=utf-8'
        >>> get_content_type("logo.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
