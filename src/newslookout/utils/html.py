"""HTML to text helpers (BeautifulSoup, stdlib html.parser backend)."""

from __future__ import annotations
from typing import Optional

from bs4 import BeautifulSoup

from .text import clean_text

_DROP_TAGS = ["script", "style", "noscript", "iframe", "svg", "form"]
_BLOCK_TAGS = ["p", "div", "br", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "table", "section"]


def extract_text_from_html(html: str) -> str:
    """Visible text of an HTML fragment, one paragraph per block element."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_DROP_TAGS):
        tag.decompose()
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n\n")
    paragraphs = [clean_text(p) for p in soup.get_text().split("\n\n")]
    return "\n\n".join(p for p in paragraphs if p)


def element_text(el) -> str:
    """Whitespace-normalised text of a BeautifulSoup element (or "" for None)."""
    if el is None:
        return ""
    return clean_text(el.get_text(" "))


def element_attr(el, attr: str) -> Optional[str]:
    if el is None:
        return None
    value = el.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    return value.strip() if value else None
