"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables live in one dataclass, read from the environment at startup
(12-factor style) and validated before anything binds a socket.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    PORT            Port to listen on                    (default: 3000)
    HOST            Address to bind                      (default: ::)
    LOG_LEVEL       DEBUG, INFO, WARNING, ERROR          (default: INFO)
    LOG_FORMAT      "text" or "json" access log lines    (default: text)
    MAX_BODY_SIZE   Request body cap in bytes            (default: 1048576)
    WORKERS         Maximum worker threads               (default: 16)

    # From the shell:
    PORT=8080 LOG_LEVEL=DEBUG python -m echosite

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout
    HTTP        keep_alive, keep_alive_timeout, max_header_size, max_body_size
    THREADING   min_workers, max_workers, queue_size, shutdown_timeout
    CONTENT     asset_dir
    LOGGING     log_level, log_format
    IDENTITY    server_name

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "::"
    """
    Address to bind.
    - "::"        all interfaces, IPv6 and IPv4 (falls back to 0.0.0.0)
    - "0.0.0.0"   all IPv4 interfaces
    - "127.0.0.1" loopback only
    """

    port: int = 3000
    """Port to listen on. 0 lets the OS pick one (handy in tests)."""

    backlog: int = 128
    """Pending connections the kernel queues before refusing new ones."""

    buffer_size: int = 8192
    """Bytes per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Socket read timeout for a request, in seconds. A client that stays
    silent longer gets 408. None waits forever.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Serve several requests per TCP connection when the client asks."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_header_size: int = 64 * 1024
    """Request line plus headers, in bytes. Over this → 431."""

    max_body_size: int = 1024 * 1024
    """
    Request body cap in bytes (1 MiB). A larger declared Content-Length, or a
    chunked body that grows past it, is rejected with 413 before the echo
    handler ever sees it.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100
    """Connections waiting for a worker. Past this, new ones get 503."""

    shutdown_timeout: float = 30.0
    """How long teardown waits for in-flight requests to drain."""

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    asset_dir: Optional[str] = None
    """Directory holding favicon.svg. None uses the copy shipped in the package."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: "text" (Apache-like) or "json" (one object per line)."""

    server_name: str = "echosite/1.0"
    """Value of the Server response header."""

    def __post_init__(self):
        self.validate()

    @property
    def max_request_size(self) -> int:
        """Upper bound on a whole raw request: headers, body and chunk framing."""
        return self.max_header_size + 2 * self.max_body_size + 4

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Raises:
            ValueError: A variable is set but not parseable, or the resulting
                        configuration fails validation.
        """
        env = os.environ if environ is None else environ
        max_workers = _env_int(env, "WORKERS", 16)

        return cls(
            host=env.get("HOST", "::"),
            port=_env_int(env, "PORT", 3000),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_format=env.get("LOG_FORMAT", "text").lower(),
            max_body_size=_env_int(env, "MAX_BODY_SIZE", 1024 * 1024),
            max_workers=max_workers,
            min_workers=min(4, max_workers),
        )

    def validate(self) -> None:
        """
        Fail fast on nonsense values, at construction rather than at first use.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.max_header_size < 1024:
            raise ValueError("max_header_size must be >= 1024")

        if self.max_body_size < 0:
            raise ValueError("max_body_size must be >= 0")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}. Use 'text' or 'json'.")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
