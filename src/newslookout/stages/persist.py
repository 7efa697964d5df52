"""Persistence stage (`mod_persist_data`).

Writes each document where later runs, `mod_offline_docs` and `mod_cmdline`
can find it:
- `destination = "file"`: pretty JSON in data_dir, named by
  `make_unique_filename`; `doc.filename` becomes the absolute path
- `destination = "database"`: the JSON text in a `documents` table of a
  SQLite file (`database_file`)

Write failures are logged; the document is forwarded either way.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import os
import sqlite3

from ..pipeline.context import Document
from ..utils.urls import make_unique_filename
from .base import Processor

log = logging.getLogger("newslookout.stages.persist")

PLUGIN_NAME = "mod_persist_data"


@dataclass
class PersistOptions:
    overwrite: bool = False
    destination: str = "file"
    file_format: str = "json"
    database_file: str = "newslookout_docs.db"


def write_json_file(doc: Document, data_dir: str, overwrite: bool = True) -> str:
    """Write the document as JSON into data_dir (atomically) and return the absolute path.

    An existing file is left untouched unless `overwrite` is set; `doc.filename`
    points at it either way.
    """
    path = os.path.abspath(os.path.join(data_dir, make_unique_filename(doc, "json")))
    doc.filename = path
    if not overwrite and os.path.exists(path):
        log.debug(f"{path} already exists, not overwriting")
        return path
    os.makedirs(os.path.dirname(path), exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(doc.to_json(indent=2))
    os.replace(tmp, path)
    return path


class PersistData(Processor):
    name = PLUGIN_NAME
    options_cls = PersistOptions

    def __init__(self, options, app_config):
        super().__init__(options, app_config)
        self._conn = None
        if self.options.file_format != "json":
            log.warning(f"{self.name}: unsupported file_format {self.options.file_format}, writing json")

    def process(self, doc: Document) -> Document:
        dest = self.options.destination
        if dest == "file":
            try:
                path = write_json_file(doc, self.app_config.data_dir, self.options.overwrite)
                log.debug(f"{self.name}: wrote '{doc.title}' from {doc.url} to {path}")
            except OSError as e:
                log.error(f"{self.name}: when writing document {doc.url} to file: {e}")
        elif dest == "database":
            self.write_to_database(doc)
        else:
            log.error(f"{self.name}: unknown destination {dest!r}, document not saved")
        return doc

    def write_to_database(self, doc: Document) -> None:
        try:
            if self._conn is None:
                # opened on the stage's own thread
                path = self.options.database_file
                if not os.path.isabs(path):
                    path = os.path.join(self.app_config.data_dir, path)
                self._conn = sqlite3.connect(path)
                self._conn.execute(
                    "CREATE TABLE IF NOT EXISTS documents ("
                    "url TEXT PRIMARY KEY, plugin TEXT, pubdate TEXT, title TEXT, content TEXT)"
                )
            verb = "INSERT OR REPLACE" if self.options.overwrite else "INSERT OR IGNORE"
            self._conn.execute(
                f"{verb} INTO documents (url, plugin, pubdate, title, content) VALUES (?, ?, ?, ?, ?)",
                (doc.url, doc.plugin_name, doc.publish_date, doc.title, doc.to_json()),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            log.error(f"{self.name}: when writing document {doc.url} to database: {e}")

    def run(self, receiver, sender) -> int:
        try:
            return super().run(receiver, sender)
        finally:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
