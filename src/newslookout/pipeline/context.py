"""Core pipeline data model.

Document is the unit of work flowing from retrievers through processors to
the terminal drain. Exactly one stage holds a Document at any time; channels
move it from one stage to the next.

Design goal:
- Keep Document stable so that JSON files written by earlier runs can be
  reloaded by `mod_offline_docs` without migration.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json
import time

# data_proc_flags bitmask, selects which enrichments apply to a document
DATA_PROC_SENTIMENT_ANALYSIS = 1
DATA_PROC_CLASSIFY_INDUSTRY = 2
DATA_PROC_CLASSIFY_MARKET = 4
DATA_PROC_CLASSIFY_PRODUCT = 8
DATA_PROC_EXTRACT_NAME_ENTITY = 16
DATA_PROC_EXTRACT_KEYWORDS = 32
DATA_PROC_FIND_SIMILAR_DOCS = 64
DATA_PROC_SUMMARIZE = 128
DATA_PROC_EXTRACT_ACTIONS = 256
DATA_PROC_COMPARE_PREV_VERSION = 512

ALL_DATA_PROC_FLAGS = (
    DATA_PROC_SENTIMENT_ANALYSIS,
    DATA_PROC_CLASSIFY_INDUSTRY,
    DATA_PROC_CLASSIFY_MARKET,
    DATA_PROC_CLASSIFY_PRODUCT,
    DATA_PROC_EXTRACT_NAME_ENTITY,
    DATA_PROC_EXTRACT_KEYWORDS,
    DATA_PROC_FIND_SIMILAR_DOCS,
    DATA_PROC_SUMMARIZE,
    DATA_PROC_EXTRACT_ACTIONS,
    DATA_PROC_COMPARE_PREV_VERSION,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def iso_date_from_ms(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).date().isoformat()


@dataclass
class CompletionRecord:
    """Row of the `completed_urls` table."""
    url: str
    plugin: str
    pubdate: str
    section_name: str
    title: str
    unique_id: str
    filename: str


@dataclass
class Document:
    # identity of the retriever that produced it
    module: str = ""
    plugin_name: str = ""
    section_name: str = ""

    # location
    url: str = ""
    pdf_url: str = ""
    filename: str = ""

    # content
    html_content: str = ""
    text: str = ""
    title: str = ""
    referrer_text: str = ""
    source_author: str = ""
    recipients: str = ""
    unique_id: str = ""

    # dates
    publish_date_ms: int = field(default_factory=_now_ms)
    publish_date: str = ""
    revision_dates: List[str] = field(default_factory=list)

    # links
    links_inward: List[str] = field(default_factory=list)
    links_outwards: List[str] = field(default_factory=list)

    # enrichment
    text_parts: List[Dict[str, Any]] = field(default_factory=list)
    classification: Dict[str, str] = field(default_factory=dict)
    generated_content: Dict[str, str] = field(default_factory=dict)
    data_proc_flags: int = 0

    def __post_init__(self) -> None:
        if not self.publish_date:
            self.publish_date = iso_date_from_ms(self.publish_date_ms)

    def set_publish_date(self, dt: datetime) -> None:
        """Set both publish date fields from one instant."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        self.publish_date_ms = int(dt.timestamp() * 1000)
        self.publish_date = dt.date().isoformat()

    def has_flag(self, flag: int) -> bool:
        return bool(self.data_proc_flags & flag)

    def completion_record(self) -> CompletionRecord:
        return CompletionRecord(
            url=self.url,
            plugin=self.plugin_name,
            pubdate=self.publish_date,
            section_name=self.section_name,
            title=self.title,
            unique_id=self.unique_id,
            filename=self.filename,
        )

    # serialisation
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        # older files carry null for absent values
        kwargs = {k: v for k, v in kwargs.items() if v is not None}
        if "publish_date_ms" in kwargs:
            kwargs["publish_date_ms"] = int(kwargs["publish_date_ms"])
        if "data_proc_flags" in kwargs:
            kwargs["data_proc_flags"] = int(kwargs["data_proc_flags"])
        return cls(**kwargs)

    @classmethod
    def from_json(cls, text: str) -> "Document":
        return cls.from_dict(json.loads(text))
