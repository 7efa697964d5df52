"""Completion store.

Purpose:
- remember which source URLs have been fully processed
- let each retriever skip those URLs on the next run
- survive process exit (SQLite file, committed per batch)

Schema (single table):
    completed_urls(url TEXT PRIMARY KEY, plugin TEXT, pubdate TEXT,
                   section_name TEXT, title TEXT, unique_id TEXT, filename TEXT)

Writes happen only from the orchestrator's drain loop. Retrievers call
`load_for()` once at startup, each on its own short-lived connection, so no
connection is shared across threads.
"""

from __future__ import annotations
from typing import Iterable, Optional, Set
import logging
import os
import sqlite3

from ..pipeline.context import CompletionRecord

log = logging.getLogger("newslookout.store")

DEFAULT_DATAFILE = "newslookout_urls.db"

_CREATE_SQL = (
    "CREATE TABLE IF NOT EXISTS completed_urls ("
    "url TEXT PRIMARY KEY, plugin TEXT, pubdate TEXT, section_name TEXT, "
    "title TEXT, unique_id TEXT, filename TEXT)"
)
_INSERT_SQL = (
    "INSERT INTO completed_urls (url, plugin, pubdate, section_name, title, unique_id, filename) "
    "VALUES (?, ?, ?, ?, ?, ?, ?)"
)


class CompletionStore:
    """Durable record of processed URLs, partitioned by plugin name."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or DEFAULT_DATAFILE
        self._conn: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            parent = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(parent, exist_ok=True)
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.execute(_CREATE_SQL)
            self._conn.commit()
        return self._conn

    def load_for(self, plugin: str) -> Set[str]:
        """Return every URL previously recorded under `plugin`.

        Errors are logged and produce an empty set, the run then re-fetches.
        """
        if not os.path.exists(self.path):
            log.info(f"Completion store {self.path} not found, no URLs recorded yet for {plugin}")
            return set()
        try:
            conn = sqlite3.connect(self.path)
            try:
                conn.execute(_CREATE_SQL)
                rows = conn.execute(
                    "SELECT url FROM completed_urls WHERE plugin = ?", (plugin,)
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            log.error(f"Could not read completed URLs for {plugin} from {self.path}: {e}")
            return set()
        urls = {r[0] for r in rows}
        log.info(f"Loaded {len(urls)} completed URLs for plugin {plugin}")
        return urls

    def append_batch(self, records: Iterable[CompletionRecord]) -> int:
        """Insert records, returning how many rows were committed.

        A duplicate URL is logged and skipped; the other records still commit.
        A store that cannot be opened or written commits nothing and returns 0.
        """
        records = list(records)
        if not records:
            return 0
        committed = 0
        try:
            conn = self._connect()
            for rec in records:
                try:
                    conn.execute(
                        _INSERT_SQL,
                        (rec.url, rec.plugin, rec.pubdate, rec.section_name,
                         rec.title, rec.unique_id, rec.filename),
                    )
                    committed += 1
                except sqlite3.IntegrityError as e:
                    log.warning(f"URL already recorded, not inserted again: {rec.url} ({e})")
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            log.error(f"Could not write completed URLs to {self.path}: {e}")
            if self._conn is not None:
                self._conn.rollback()
            committed = 0
        if committed < len(records):
            log.error(f"Committed {committed} of {len(records)} completed URLs to {self.path}")
        else:
            log.debug(f"Committed {committed} completed URLs to {self.path}")
        return committed

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "CompletionStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
