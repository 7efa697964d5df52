"""PDF to text (PyMuPDF)."""

from __future__ import annotations
import logging

import fitz  # PyMuPDF

log = logging.getLogger("newslookout.pdf")


def extract_text_from_pdf(path: str) -> str:
    """Text of every page joined by blank lines; "" if the file cannot be read."""
    try:
        with fitz.open(path) as pdf:
            pages = [page.get_text() for page in pdf]
    except Exception as e:
        log.error(f"Could not extract text from PDF {path}: {e}")
        return ""
    return "\n\n".join(p.strip() for p in pages if p.strip())

