"""
Application context.

Everything the dispatcher and handlers need from the outside world, built
once at startup and passed down explicitly. No module-level server or logger
state: two servers in one process (as the tests run them) never share
anything but read-only code.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import ServerConfig


DEFAULT_ASSET_DIR = Path(__file__).parent / "assets"


@dataclass(frozen=True)
class AppContext:
    """
    Attributes:
        config:    The validated server configuration.
        asset_dir: Directory the static responder reads favicon.svg from.
        logger:    Logger handlers report through.
    """

    config: ServerConfig
    asset_dir: Path
    logger: logging.Logger

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        logger: Optional[logging.Logger] = None,
    ) -> "AppContext":
        asset_dir = Path(config.asset_dir) if config.asset_dir else DEFAULT_ASSET_DIR
        return cls(
            config=config,
            asset_dir=asset_dir,
            logger=logger or logging.getLogger("echosite.app"),
        )
