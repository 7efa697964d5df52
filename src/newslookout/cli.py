"""CLI entrypoint.

Usage:
- `newslookout conf/newslookout.toml`

Loads the configuration, sets up logging, guards the run with the PID file
and runs the pipeline once to completion.

Exit codes: 0 on success, 1 on configuration errors, 2 on bad arguments.
"""

from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import load_config
from .errors import ConfigError
from .logging_ import setup_logging
from .pidfile import PidFile
from .pipeline.build import load_and_run_pipeline

log = logging.getLogger("newslookout.cli")


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="newslookout",
        description="Retrieve news and regulatory documents and run them through the processing pipeline.",
    )
    p.add_argument("config", help="Path to the TOML (or YAML) configuration file")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = p.parse_args(argv)

    try:
        app_config = load_config(args.config)
    except ConfigError as e:
        print(f"newslookout: {e}", file=sys.stderr)
        return 1

    setup_logging(
        log_file=app_config.log_file,
        log_level=app_config.log_level,
        max_bytes=int(app_config.max_logfile_size),
        backup_count=int(app_config.logfile_backup_count),
    )
    log.info(f"Starting newslookout {__version__} with configuration {args.config}")

    try:
        with PidFile(app_config.pid_file):
            docs = load_and_run_pipeline(app_config)
    except ConfigError as e:
        log.error(f"Configuration error: {e}")
        return 1

    log.info(f"Completed processing {len(docs)} documents.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
