"""Text normalization and word-count based splitting."""

from __future__ import annotations
import re
from typing import List, Optional, Pattern

_ALPHA_RE = re.compile(r"[A-Za-z]")
_BLANK_LINES_RE = re.compile(r"\n\s+\n")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

# section headings that start a new part regardless of word count
ANNEXURE_MARKERS_RE = re.compile(
    r"(\n[ ]*\nAnnex[ure]* |\n[ ]*\nAppendix |[ ]+Page \d+ of \d+[ ]+ANNEXURE |[ ]+Page \d+ of \d+[ ]+APPENDIX )"
)

_GREETING_RE = re.compile(
    r"([Dear ]*Madam[ ]*/[Dear ]*Sir|Dear Sir/|Dear Sir /|Madam / Dear Sir|Madam / Sir|Madam|Sir)"
)


def clean_text(text: str) -> str:
    """Drop control characters and collapse all whitespace to single spaces."""
    if not text:
        return ""
    text = _CONTROL_RE.sub(" ", text)
    return " ".join(text.split())


def normalize_paragraphs(text: str) -> str:
    """Turn blank lines that contain spaces or tabs into plain paragraph breaks."""
    return _BLANK_LINES_RE.sub("\n\n", text)


def word_count(text: str) -> int:
    """Count whitespace-separated tokens that contain at least one letter."""
    if not text:
        return 0
    return sum(1 for tok in text.split() if _ALPHA_RE.search(tok))


def get_last_n_words(text: str, n: int) -> str:
    if n <= 0:
        return ""
    return " ".join(text.split()[-n:])


def clean_recipients(recipients: str) -> str:
    """Cut the letter greeting ("Dear Madam/Sir," etc.) off a recipients line."""
    head = _GREETING_RE.split(recipients, maxsplit=1)[0]
    return " ".join(head.split())


def split_at_markers(text: str, pattern: Pattern[str] = ANNEXURE_MARKERS_RE) -> List[str]:
    """Cut text before every marker match, keeping the marker with the following section."""
    cuts = [m.start() for m in pattern.finditer(text) if m.start() > 0]
    if not cuts:
        return [text]
    sections = []
    prev = 0
    for pos in cuts:
        sections.append(text[prev:pos])
        prev = pos
    sections.append(text[prev:])
    return [s for s in sections if s.strip()]


def split_by_word_count(text: str, max_words_per_split: int, previous_overlap: int = 0,
                        lead: str = "") -> List[str]:
    """Split text into parts of roughly `max_words_per_split` words.

    Paragraphs (separated by a blank line) are merged greedily into the
    current part until the next one would push it over the limit. Each new
    part starts with the last `previous_overlap` words of the part before it.
    A single paragraph longer than the limit becomes a part of its own.
    `lead` is prepended to the first part, the same way an overlap tail is.
    """
    parts: List[str] = []
    current = lead
    current_wc = word_count(lead)
    # False while `current` holds only the overlap tail of the previous part
    has_blocks = False

    for block in text.split("\n\n"):
        block = block.strip()
        if not block:
            continue
        block_wc = word_count(block)
        if has_blocks and current_wc + block_wc > max_words_per_split:
            parts.append(current)
            current = get_last_n_words(current, previous_overlap)
            current_wc = word_count(current)
            has_blocks = False
        if not current:
            current = block
        elif not has_blocks:
            current = f"{current} {block}"
        else:
            current = f"{current}\n\n{block}"
        current_wc += block_wc
        has_blocks = True

    if has_blocks:
        parts.append(current)
    return parts


def split_text(text: str, max_words_per_split: int, previous_overlap: int = 0,
               marker_pattern: Optional[Pattern[str]] = None) -> List[str]:
    """Split text into parts, optionally forcing breaks at section markers first.

    The overlap tail carries across a forced break, so every part after the
    first starts with the last `previous_overlap` words of the part before it.
    """
    sections = split_at_markers(text, marker_pattern) if marker_pattern is not None else [text]
    parts: List[str] = []
    for section in sections:
        lead = get_last_n_words(parts[-1], previous_overlap) if parts else ""
        parts.extend(split_by_word_count(normalize_paragraphs(section), max_words_per_split,
                                         previous_overlap, lead))
    return [p for p in parts if p.strip()]
