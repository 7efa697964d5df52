"""Offline documents retriever (`mod_offline_docs`).

Feeds documents already on disk back into the pipeline, e.g. to run newly
enabled processors over an archive.

- `file_extension = "json"`: files written by `mod_persist_data`, loaded as Documents
- `file_extension = "pdf"`: PDF files, text extracted with PyMuPDF
- `folder_name`: directory to read (default: data_dir)
- `published_in_past_days`: only documents published within this many days
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional
import logging
import time

from ..pipeline.context import Document
from ..utils.pdf import extract_text_from_pdf
from .base import Retriever

log = logging.getLogger("newslookout.sources.offline_docs")

PLUGIN_NAME = "mod_offline_docs"


@dataclass
class OfflineDocsOptions:
    file_extension: str = "json"
    folder_name: Optional[str] = None
    published_in_past_days: int = 999999


def list_files(folder: str, extension: str) -> List[Path]:
    ext = extension.lower().lstrip(".")
    root = Path(folder)
    if not root.is_dir():
        log.error(f"{PLUGIN_NAME}: folder {folder} does not exist")
        return []
    return sorted(p for p in root.iterdir() if p.is_file() and p.suffix.lower() == f".{ext}")


class OfflineDocsRetriever(Retriever):
    name = PLUGIN_NAME
    options_cls = OfflineDocsOptions

    def cutoff_ms(self) -> int:
        return int((time.time() - self.options.published_in_past_days * 86400) * 1000)

    def retrieve(self) -> Iterable[Document]:
        folder = self.options.folder_name or self.app_config.data_dir
        ext = self.options.file_extension.lower().lstrip(".")
        files = list_files(folder, ext)
        log.info(f"{self.name}: found {len(files)} .{ext} files in {folder}")
        cutoff = self.cutoff_ms()
        for path in files:
            if ext == "json":
                doc = self.load_json(path)
            elif ext == "pdf":
                doc = self.load_pdf(path)
            else:
                log.error(f"{self.name}: unsupported file_extension {ext}")
                return
            if doc is None:
                continue
            if doc.publish_date_ms < cutoff:
                log.debug(f"{self.name}: {path} published before the configured window, skipped")
                continue
            if not self.claim(doc.url):
                log.info(f"{self.name}: ignoring already retrieved url {doc.url}")
                continue
            log.info(f"{self.name}: processing document titled '{doc.title}'")
            yield doc

    def load_json(self, path: Path) -> Optional[Document]:
        try:
            doc = Document.from_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, TypeError) as e:
            log.error(f"{self.name}: could not load document from {path}: {e}")
            return None
        doc.filename = str(path.resolve())
        doc.plugin_name = self.name
        if not doc.url:
            doc.url = path.resolve().as_uri()
        return doc

    def load_pdf(self, path: Path) -> Optional[Document]:
        text = extract_text_from_pdf(str(path))
        if not text:
            return None
        doc = Document(
            module=self.name,
            plugin_name=self.name,
            section_name="pdf",
            url=path.resolve().as_uri(),
            filename=str(path.resolve()),
            title=path.stem,
            text=text,
        )
        doc.set_publish_date(datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc))
        return doc
