"""Retriever plugin interface.

Goal: allow new sources to be added without changing pipeline code.

A retriever:
- runs on its own thread and sends Documents into the shared intake channel
- loads the URLs already completed for its plugin name once, at startup
- produces exactly one Document per new URL (repeats within a run are skipped)
- never lets a network or parse failure for one URL end the whole run

Subclasses implement `retrieve()`, a generator of Documents, and call
`claim(url)` before doing expensive work for a candidate URL.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Set
import logging

from ..checkpoints.store import CompletionStore
from ..config import AppConfig, build_options
from ..errors import ChannelClosed
from ..pipeline.channel import Sender
from ..pipeline.context import Document

log = logging.getLogger("newslookout.sources")


@dataclass
class RetrieverOptions:
    maxpages: int = 1
    items_per_page: int = 10


class Retriever(ABC):
    """Base interface for all retrievers."""
    name: str = "retriever"
    options_cls = RetrieverOptions

    def __init__(self, options: Optional[Dict[str, Any]], app_config: AppConfig):
        self.app_config = app_config
        self.options = build_options(self.options_cls, options or {}, self.name)
        self.completed: Set[str] = set()
        self._seen: Set[str] = set()

    def claim(self, url: str) -> bool:
        """True if `url` is new for this run; marks it as taken."""
        if not url or url in self.completed or url in self._seen:
            return False
        self._seen.add(url)
        return True

    @abstractmethod
    def retrieve(self) -> Iterable[Document]:
        ...

    def run(self, sender: Sender, store: CompletionStore) -> int:
        """Send every newly retrieved Document downstream, then close `sender`."""
        self.completed = store.load_for(self.name)
        self._seen = set()
        log.info(f"{self.name}: starting with {len(self.completed)} previously completed URLs")
        sent = 0
        try:
            for doc in self.retrieve():
                if not doc.url:
                    log.warning(f"{self.name}: dropping document without url, title='{doc.title}'")
                    continue
                if doc.url in self.completed:
                    log.info(f"{self.name}: ignoring already retrieved url {doc.url}")
                    continue
                try:
                    sender.send(doc)
                    sent += 1
                except ChannelClosed as e:
                    log.error(f"{self.name}: could not send {doc.url} downstream: {e}")
        finally:
            sender.close()
        log.info(f"{self.name}: sent {sent} documents for processing")
        return sent
