"""Logging utilities.

We use Python's standard `logging` module with one plain-text format for
file and console output.

- Logs go to: `log_file` from the configuration (rotated by size)
- Also prints the same records to stderr.
"""

from __future__ import annotations
import logging
import logging.handlers
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def setup_logging(
    log_file: Optional[str] = None,
    log_level: str = "INFO",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 30,
) -> None:
    """
    Setup logging configuration.

    Args:
        log_file: Path of the log file (None logs to console only)
        log_level: One of DEBUG, INFO, WARN, ERROR
        max_bytes: Size at which the log file is rotated
        backup_count: Number of rotated log files to keep
    """
    level = _LEVELS.get(str(log_level).upper())

    root = logging.getLogger()
    root.setLevel(level or logging.INFO)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    # File
    if log_file:
        parent = os.path.dirname(log_file)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    if level is None:
        logging.getLogger("newslookout").warning(f"Unknown log level {log_level!r}, using INFO")
