"""Processor plugin interface.

Processors must:
- accept every Document from the upstream channel
- forward it downstream exactly once, even when processing it failed
- leave existing outputs alone unless `overwrite` is configured
- close their downstream sender at end-of-stream

Subclasses implement `process(doc)`. A processor with a `flag` only touches
documents whose `data_proc_flags` carry that flag; documents with no flags
set at all are treated as wanting every enrichment.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from ..config import AppConfig, build_options
from ..errors import ChannelClosed
from ..pipeline.channel import Receiver, Sender
from ..pipeline.context import Document

log = logging.getLogger("newslookout.stages")


@dataclass
class ProcessorOptions:
    overwrite: bool = False


class Processor(ABC):
    """Base class for data processors.

    `applies_to` gates on `flag`: a document lacking the flag is forwarded
    unchanged. The one exception is a document with `data_proc_flags == 0`,
    which no retriever has tagged and so is given every enrichment.
    """

    name: str = "processor"
    options_cls = ProcessorOptions
    flag: Optional[int] = None

    def __init__(self, options: Optional[Dict[str, Any]], app_config: AppConfig):
        self.app_config = app_config
        self.options = build_options(self.options_cls, options or {}, self.name)

    def applies_to(self, doc: Document) -> bool:
        if self.flag is None or doc.data_proc_flags == 0:
            return True
        return doc.has_flag(self.flag)

    @abstractmethod
    def process(self, doc: Document) -> Document:
        ...

    def run(self, receiver: Receiver, sender: Sender) -> int:
        """Process and forward every document until the upstream channel ends."""
        count = 0
        try:
            for doc in receiver:
                if self.applies_to(doc):
                    try:
                        doc = self.process(doc) or doc
                    except Exception:
                        log.exception(f"{self.name}: error processing {doc.url}, forwarding as is")
                try:
                    sender.send(doc)
                    count += 1
                except ChannelClosed as e:
                    log.error(f"{self.name}: when sending processed doc {doc.url}: {e}")
        finally:
            sender.close()
        log.info(f"{self.name}: completed processing {count} documents")
        return count
