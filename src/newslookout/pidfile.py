"""PID file guard against running two instances on the same data directory."""

from __future__ import annotations
import logging
import os
from typing import Optional

from .errors import ConfigError

log = logging.getLogger("newslookout.pidfile")


class PidFile:
    """Create the PID file on enter and remove it on exit.

    If the file already exists another instance is assumed to be running and
    ConfigError is raised. A `None` path disables the guard.
    """

    def __init__(self, path: Optional[str]):
        self.path = path
        self._created = False

    def __enter__(self) -> "PidFile":
        if not self.path:
            return self
        if os.path.exists(self.path):
            raise ConfigError(
                f"PID file {self.path} exists, another instance may be running. "
                f"Remove the file if that is not the case."
            )
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(str(os.getpid()))
        self._created = True
        log.info(f"Initialised PID file {self.path} with process id {os.getpid()}")
        return self

    def __exit__(self, *exc) -> None:
        if not self._created:
            return
        try:
            os.remove(self.path)
            log.info(f"Removed PID file {self.path}")
        except OSError as e:
            log.error(f"Could not remove PID file {self.path}: {e}")
        self._created = False
