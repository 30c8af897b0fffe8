"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    python -m echosite            # or just: echosite
    PORT=8080 echosite            # another port
    HOST=127.0.0.1 echosite       # loopback only
    LOG_FORMAT=json echosite      # JSON access log lines

All settings come from the environment (see echosite.config); the only flags
are --help and --version.

Exit status: 0 after a clean shutdown, 1 if the configuration is invalid or
the port cannot be bound.

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import ServerConfig
from .server import HTTPServer, ServerError


logger = logging.getLogger("echosite")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="echosite",
        description="Small HTTP server: static pages on GET, JSON echo on POST",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  PORT            port to listen on (default: 3000)
  HOST            address to bind (default: ::, all interfaces)
  LOG_LEVEL       DEBUG, INFO, WARNING, ERROR (default: INFO)
  LOG_FORMAT      text or json access log (default: text)
  MAX_BODY_SIZE   request body cap in bytes (default: 1048576)
  WORKERS         maximum worker threads (default: 16)
        """,
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"echosite {__version__}",
    )
    parser.parse_args(argv)

    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    server = HTTPServer(config)

    try:
        server.run()
    except ServerError as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
