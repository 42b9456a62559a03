"""Root logging setup for the daemon process.

Log output goes to stderr and, when a log file is given, to a small
rotating file. Stdout stays reserved for command-line results such as
device listings.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 500 * 1024
LOG_BACKUP_COUNT = 2

# Per-request access lines would drown out daemon events
QUIET_LOGGERS = ("aiohttp.access",)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Replace any root handlers with the daemon's console and file handlers."""
    numeric_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level '{level}'")

    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        )
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=handlers,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


__all__ = ["configure_logging", "LOG_FORMAT", "LOG_DATEFMT"]
