"""Logging setup shared by the CLI and the web API.

Both surfaces configure logging once at start-up from ``Settings.log_level``;
the CLI's ``--log-level`` option overrides it. Engine modules only create
module loggers and log at DEBUG.
"""

import logging
import sys
from typing import Optional

from .config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
PACKAGE_LOGGERS = ("finflow", "finflow_web")


def resolve_level(settings: Settings, override: Optional[str] = None) -> int:
    """Return the numeric level for ``override`` or, when unset, the configured one.

    Raises
    ------
    ValueError
        If the name is not a standard logging level.
    """
    name = (override or settings.log_level).strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level '{name}'")
    return level


def setup_logging(settings: Settings, override: Optional[str] = None) -> int:
    """
    Configure application logging and return the level in effect.

    The root handler is only installed if none exists yet; the package
    loggers always get the resolved level.
    """
    level = resolve_level(settings, override)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(level)
    return level


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve a namespaced logger.
    """
    return logging.getLogger(name)
