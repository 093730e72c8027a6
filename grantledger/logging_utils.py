"""Mini README: Application-wide logging helpers for the grant ledger.

Structure:
    * get_logger - factory returning module loggers with baseline configuration.
    * configure_root_logger - sets the root level; attaches the handler once.

Usage:
    Modules call ``get_logger(__name__)`` at import time and log with
    ``%s`` placeholders. Ledger reads log at DEBUG, mutations and import
    totals at INFO, skipped rows and soft validation failures at WARNING.
    Later configuration calls only change the level, so reloading modules
    in development never stacks duplicate handlers.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

_LOGGER_INITIALISED = False
_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"


def configure_root_logger(level: Union[int, str] = logging.INFO) -> None:
    """Set the root level, attaching the stream handler on first use only."""

    global _LOGGER_INITIALISED
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)
    if _LOGGER_INITIALISED:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(handler)
    _LOGGER_INITIALISED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-specific logger ensuring baseline configuration."""

    if not _LOGGER_INITIALISED:
        configure_root_logger()
    return logging.getLogger(name)
