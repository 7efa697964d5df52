"""External command stage (`mod_cmdline`).

Runs `command_name <doc.filename>` for every document and logs its output.
Should come after `mod_persist_data` so that the file exists.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import subprocess

from ..errors import ConfigError
from ..pipeline.context import Document
from .base import Processor

log = logging.getLogger("newslookout.stages.cmdline")

PLUGIN_NAME = "mod_cmdline"


@dataclass
class CmdlineOptions:
    overwrite: bool = False
    command_name: str = ""
    timeout: int = 300


class Cmdline(Processor):
    name = PLUGIN_NAME
    options_cls = CmdlineOptions

    def __init__(self, options, app_config):
        super().__init__(options, app_config)
        if not self.options.command_name:
            raise ConfigError(f"{self.name}: command_name is required")

    def process(self, doc: Document) -> Document:
        if not doc.filename:
            log.warning(f"{self.name}: {doc.url} has no filename, command not run")
            return doc
        args = [self.options.command_name, doc.filename]
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=self.options.timeout)
        except (OSError, subprocess.SubprocessError) as e:
            log.error(f"{self.name}: could not run {args}: {e}")
            return doc
        if result.stdout:
            log.info(f"{self.name}: {self.options.command_name} output: {result.stdout.strip()}")
        if result.returncode != 0:
            log.warning(
                f"{self.name}: {self.options.command_name} exited with {result.returncode} for {doc.filename}: "
                f"{result.stderr.strip()}"
            )
        return doc
