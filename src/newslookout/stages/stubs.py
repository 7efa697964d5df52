"""Placeholder stages.

They keep their place in a configured chain and forward every document
unchanged, so configurations written for a fuller deployment still run.
"""

from __future__ import annotations
import logging

from ..pipeline.context import (
    DATA_PROC_CLASSIFY_INDUSTRY,
    DATA_PROC_FIND_SIMILAR_DOCS,
    Document,
)
from .base import Processor

log = logging.getLogger("newslookout.stages.stubs")


class PassThrough(Processor):
    def process(self, doc: Document) -> Document:
        log.debug(f"{self.name}: forwarding '{doc.title}' unchanged")
        return doc


class Classify(PassThrough):
    name = "mod_classify"
    flag = DATA_PROC_CLASSIFY_INDUSTRY


class Dedupe(PassThrough):
    name = "mod_dedupe"
    flag = DATA_PROC_FIND_SIMILAR_DOCS


class VectorStore(PassThrough):
    name = "mod_vectorstore"


class SolrSubmit(PassThrough):
    name = "mod_solrsubmit"


class DataPrep(PassThrough):
    name = "mod_dataprep"
