"""Date parsing for listing pages."""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Iterable, Optional

COMMON_FORMATS = ("%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d-%m-%Y", "%d/%m/%Y", "%Y-%m-%d")


def parse_date(text: str, formats: Iterable[str] = COMMON_FORMATS) -> Optional[datetime]:
    """Parse a date string with the first matching format, as a UTC datetime."""
    if not text:
        return None
    text = " ".join(text.split())
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None
