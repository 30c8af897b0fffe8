"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket: create, bind, listen, accept, close.

    ┌───────────────────────┐
    │   Listening Socket    │ ◄── created once by bind()
    │   bound to [::]:3000  │     never sends or receives data
    └───────────┬───────────┘
                │ accept()
    ┌───────────┼───────────────────────┐
    ▼           ▼                       ▼
  Connection  Connection   ...       Connection     one per client, handed
                                                    to the HTTP layer

Binding and serving are two steps so the caller can log the address (and a
test can learn an OS-assigned port) before the accept loop starts blocking.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR   Rebind right after a restart instead of waiting out TIME_WAIT.
               Binding a port another process is *listening* on still fails.

TCP_NODELAY    Send small responses immediately (no Nagle batching).

IPV6_V6ONLY=0  On "::" one socket takes IPv6 and IPv4-mapped clients alike.
               Hosts without IPv6 get 0.0.0.0 instead.

SO_REUSEPORT is not set, so a second server on the same port fails to bind
with "Address already in use".

=============================================================================
SIGNALS
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd, kill) trigger shutdown()
instead of killing the process mid-response. Python only allows installing
handlers from the main thread, so an embedded server (tests, another app's
thread) skips them and is stopped with shutdown().

=============================================================================
"""

import errno
import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


# Bind errors that mean "this host has no IPv6", not "the port is taken"
_NO_IPV6_ERRNOS = (errno.EAFNOSUPPORT, errno.EADDRNOTAVAIL, errno.EPROTONOSUPPORT)


class SocketServer:
    """
    Low-level TCP socket server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    bind()              create socket, set options, bind, listen      │
    │        │                                                             │
    │        ▼                                                             │
    │    serve_forever(cb)   accept loop, cb(Connection) per client        │
    │        │               (short accept timeout to notice shutdown)     │
    │        ▼                                                             │
    │    shutdown()          ask the loop to stop (any thread, idempotent) │
    │        │                                                             │
    │        ▼                                                             │
    │    close()             release the listening socket                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        server = SocketServer(config)
        host, port = server.bind()
        server.serve_forever(handle_connection)  # Blocks until shutdown()
        server.close()
    """

    ACCEPT_TIMEOUT = 0.5

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_bound(self) -> bool:
        return self._socket is not None

    @property
    def address(self) -> Tuple[str, int]:
        """
        The address actually bound: (ip, port).

        Differs from config when port 0 was requested or "::" fell back to
        0.0.0.0. Before bind() it echoes the configuration.
        """
        if self._socket is None:
            return (self.config.host, self.config.port)
        sockname = self._socket.getsockname()
        return (sockname[0], sockname[1])

    # =========================================================================
    # BINDING
    # =========================================================================

    def bind(self) -> Tuple[str, int]:
        """
        Create the listening socket.

        Returns:
            The bound (ip, port).

        Raises:
            OSError: The address cannot be bound (in use, permission denied,
                     unknown host). Logged here before it propagates.
        """
        if self._socket is not None:
            return self.address

        host, port = self.config.host, self.config.port

        try:
            try:
                sock = self._bind_socket(host, port)
            except OSError as e:
                if host != "::" or e.errno not in _NO_IPV6_ERRNOS:
                    raise
                logger.debug(f"IPv6 unavailable ({e}), binding 0.0.0.0 instead")
                sock = self._bind_socket("0.0.0.0", port)
        except OSError as e:
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            raise

        self._socket = sock
        self._running = True
        self._shutdown_event.clear()
        return self.address

    def _bind_socket(self, host: str, port: int) -> socket.socket:
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

            if family == socket.AF_INET6 and host == "::":
                try:
                    sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
                except (AttributeError, OSError):
                    pass  # Platform is IPv6-only on this socket; still serves IPv6

            # Accept wakes up periodically to check the running flag
            sock.settimeout(self.ACCEPT_TIMEOUT)

            sock.bind((host, port))
            sock.listen(self.config.backlog)
        except OSError:
            sock.close()
            raise

        return sock

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def install_signal_handlers(self) -> bool:
        """
        Route SIGINT and SIGTERM to shutdown().

        Returns:
            False (and does nothing) when not called from the main thread.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, skipping signal handlers")
            return False

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)
        return True

    def restore_signal_handlers(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def serve_forever(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Args:
            connection_handler: Receives each accepted Connection. Must not
                                block for long; the HTTP server just queues
                                it for a worker.

        Raises:
            RuntimeError: bind() was not called first.
        """
        if self._socket is None:
            raise RuntimeError("serve_forever() called before bind()")

        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break  # Listener closed by shutdown
                logger.error(f"Accept error: {e}")
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_header_size=self.config.max_header_size,
                max_body_size=self.config.max_body_size,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

        self._shutdown_event.set()

    def shutdown(self):
        """
        Ask the accept loop to stop. Safe from any thread, safe to repeat.

        The loop notices within ACCEPT_TIMEOUT seconds.
        """
        if not self._running:
            return
        logger.debug("Stopping accept loop")
        self._running = False

    def close(self):
        """Release the listening socket. Safe to call twice."""
        self._running = False
        self.restore_signal_handlers()

        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._shutdown_event.set()

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has exited. True unless it timed out."""
        return self._shutdown_event.wait(timeout)
