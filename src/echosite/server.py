"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together: socket server, thread pool, parser, dispatcher and
access log.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │  Dispatcher  │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────┬───────┘        │
    │           ▼                   ▼                   ▼                 │
    │      Connection      _process_connection   StaticResponder         │
    │                                            EchoHandler              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    start()          bind + listen, start workers, log "Server listening on ..."
    serve_forever()  accept loop; blocks until shutdown()
    shutdown()       stop accepting (any thread)
    close()          release the listener, drain in-flight requests, stop workers
    run()            all of the above, plus logging setup and SIGINT/SIGTERM

=============================================================================
ONE REQUEST
=============================================================================

    1. Worker reads one full request          (413/431/408 on the way)
    2. RequestParser → HTTPRequest            (400/505)
    3. Dispatcher → exactly one HTTPResponse  (404/405, 500 if a handler blew up)
    4. Connection header decided, finish() + sendall()
    5. Access log line
    6. Keep-alive: back to 1. Otherwise close.

Errors in steps 1-2 are answered with a JSON {"error": ...} body and the
connection is closed; the client may have sent bytes we never consumed.

=============================================================================
"""

import logging
import time
from typing import Optional, Tuple

from .config import ServerConfig
from .context import AppContext
from .dispatcher import Dispatcher
from .access_log import AccessLogger
from .core import SocketServer, Connection, ThreadPool
from .http import (
    RequestParser, HTTPParseError,
    HTTPResponse, ResponseBuilder, HTTPStatus,
)


logger = logging.getLogger(__name__)


WILDCARD_HOSTS = ("", "::", "0.0.0.0")


class ServerError(Exception):
    """The server could not start (bind or listen failed)."""


def listening_url(host: str, port: int) -> str:
    """
    URL to print for a bound address.

        ("::", 3000)        → http://localhost:3000
        ("127.0.0.1", 80)   → http://127.0.0.1:80
        ("::1", 3000)       → http://[::1]:3000
    """
    if host in WILDCARD_HOSTS:
        host = "localhost"
    elif ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}"


class HTTPServer:
    """
    HTTP/1.1 server for the site: static pages on GET, JSON echo on POST.

    Usage:
        server = HTTPServer(ServerConfig.from_env())
        server.run()  # Blocks until Ctrl+C / SIGTERM

    Embedded (tests, another thread):
        server = HTTPServer(ServerConfig(host="127.0.0.1", port=0))
        host, port = server.start()
        threading.Thread(target=server.serve_forever).start()
        ...
        server.shutdown()
        server.close()
    """

    def __init__(self, config: Optional[ServerConfig] = None, context: Optional[AppContext] = None):
        """
        Args:
            config: Server configuration. Defaults apply when omitted.
            context: Prebuilt application context. Built from config when omitted.
        """
        self.config = config or ServerConfig()
        self.context = context or AppContext.from_config(self.config)

        self.dispatcher = Dispatcher(self.context)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._access_log = AccessLogger(log_format=self.config.log_format)

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            max_queue_size=self.config.queue_size,
        )

        self._started = False
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def url(self) -> str:
        return listening_url(*self.address)

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> Tuple[str, int]:
        """
        Bind the listener and start the workers. Does not block.

        Logs "Server listening on <url>" once, after the bind succeeded.

        Returns:
            The bound (ip, port); the port is the real one when 0 was asked for.

        Raises:
            ServerError: The address could not be bound.
        """
        if self._started:
            return self.address

        try:
            self._socket_server.bind()
        except OSError as e:
            raise ServerError(
                f"Cannot listen on {self.config.host}:{self.config.port}: {e}"
            ) from e

        self._thread_pool.start()
        self._started = True
        self._running = True

        logger.info(f"Server listening on {self.url}")
        return self.address

    def serve_forever(self):
        """Accept connections until shutdown(). Calls start() if needed."""
        if not self._started:
            self.start()
        self._socket_server.serve_forever(self._handle_connection)

    def shutdown(self):
        """Stop accepting new connections. Safe from any thread."""
        self._socket_server.shutdown()

    def close(self):
        """
        Tear down.

        1. Close the listening socket (no new connections)
        2. Let kept-alive connections finish their current request
        3. Wait up to shutdown_timeout for workers to drain
        4. Stop the workers
        """
        if not self._started:
            return

        logger.info("Shutting down server...")
        self._running = False
        self._socket_server.close()

        drained = self._thread_pool.shutdown(wait=True, timeout=self.config.shutdown_timeout)
        if not drained:
            logger.warning("Some connections were still open at shutdown")

        self._started = False
        logger.info("Server stopped")

    def run(self):
        """
        Start the server and block until SIGINT/SIGTERM.

        Raises:
            ServerError: The address could not be bound.
        """
        self._setup_logging()
        self.start()
        self._socket_server.install_signal_handlers()

        try:
            self.serve_forever()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self.close()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("echosite").setLevel(level)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        self.close()
        return False

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Queue a freshly accepted connection for a worker; 503 if the queue is full."""
        try:
            submitted = self._thread_pool.submit(self._process_connection, args=(conn,))
        except RuntimeError:
            submitted = False  # Pool already shutting down

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection (runs in a worker thread)."""
        with conn:
            while self._running or conn.requests_handled == 0:
                try:
                    if not self._serve_one(conn):
                        break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _serve_one(self, conn: Connection) -> bool:
        """
        Read, dispatch and answer one request.

        Returns:
            True if the connection should stay open for another request.
        """
        try:
            raw_request = conn.read_request()
            if raw_request is None:
                return False
            start_time = time.time()
            request = self._parser.parse(raw_request, conn.address)
        except HTTPParseError as e:
            logger.debug(f"[{conn.id}] Rejected request: {e}")
            self._send_error(conn, e.status_code, str(e))
            return False
        except TimeoutError:
            self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
            return False

        response = self.dispatcher.dispatch(request)

        keep_alive = self.config.keep_alive and request.is_keep_alive and self._running
        self._set_connection_headers(response, keep_alive)

        sent = conn.send_response(response, self.config.server_name)
        self._access_log.log(request, response, conn.address, (time.time() - start_time) * 1000)

        return sent and keep_alive

    def _set_connection_headers(self, response: HTTPResponse, keep_alive: bool):
        if keep_alive:
            response.headers.setdefault("Connection", "keep-alive")
            response.headers.setdefault("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            response.set_header("Connection", "close")

    def _send_error(self, conn: Connection, status: int, message: str):
        """Answer a request that never reached the dispatcher, and mark the connection for closing."""
        response = (ResponseBuilder()
            .status(HTTPStatus(status))
            .json({"error": message})
            .close_connection()
            .build())

        conn.send_response(response, self.config.server_name)
        self._access_log.log(None, response, conn.address, 0.0)


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """Build a server from config, or from the environment when none is given."""
    return HTTPServer(config or ServerConfig.from_env())
