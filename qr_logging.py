# Purpose: Console / file logging for the QR command-line tools. Library modules only call getLogger.

import logging
import logging.handlers
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 1_000_000
LOG_BACKUPS = 3

_installed = []


def setup_logging(level="INFO", log_file=None):
    """
    Configures the root logger. Calling it again replaces the handlers it installed before.

    Args:
        level: level name or number
        log_file: optional path for a size-rotated log next to the console output
    """
    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else level.upper())
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)
    _installed.append(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        _installed.append(file_handler)

    return root
