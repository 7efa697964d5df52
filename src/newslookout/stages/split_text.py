"""Text splitter (`split_text`).

Splits `doc.text` into `doc.text_parts` so that LLM stages can work on pieces
that fit their context window.

Configuration:
```toml
{name = "split_text", type = "data_processor", enabled = true, priority = 1,
 overwrite = false, min_word_limit_to_split = 700, previous_part_overlap = 70}
```
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List
import logging

from ..errors import ConfigError
from ..pipeline.context import Document
from ..utils.text import ANNEXURE_MARKERS_RE, split_text
from .base import Processor

log = logging.getLogger("newslookout.stages.split_text")

PLUGIN_NAME = "split_text"


@dataclass
class SplitTextOptions:
    overwrite: bool = False
    min_word_limit_to_split: int = 600
    previous_part_overlap: int = 50
    split_at_annexures: bool = True


def make_text_parts(parts: List[str]) -> List[Dict[str, Any]]:
    out = []
    for text in parts:
        if not text.strip():
            continue
        out.append({"id": len(out) + 1, "text": text, "insights": []})
    return out


class SplitText(Processor):
    name = PLUGIN_NAME
    options_cls = SplitTextOptions

    def __init__(self, options, app_config):
        super().__init__(options, app_config)
        if self.options.min_word_limit_to_split < 1:
            raise ConfigError(f"{self.name}: min_word_limit_to_split must be positive")
        if self.options.previous_part_overlap < 0:
            raise ConfigError(f"{self.name}: previous_part_overlap must not be negative")

    def process(self, doc: Document) -> Document:
        if doc.text_parts and not self.options.overwrite:
            log.debug(f"{self.name}: {doc.url} already split into {len(doc.text_parts)} parts")
            return doc
        if not doc.text.strip():
            log.debug(f"{self.name}: {doc.url} has no text to split")
            return doc
        parts = split_text(
            doc.text,
            self.options.min_word_limit_to_split,
            self.options.previous_part_overlap,
            ANNEXURE_MARKERS_RE if self.options.split_at_annexures else None,
        )
        doc.text_parts = make_text_parts(parts)
        log.info(f"{self.name}: split '{doc.title}' into {len(doc.text_parts)} parts")
        return doc
