"""URL validation and deterministic file naming."""

from __future__ import annotations
import re
from typing import Optional
from urllib.parse import urljoin, urlparse

from .hashing import url_hash

MAX_RESOURCE_CHARS = 64

_WEB_SUFFIX_RE = re.compile(r"\.(?:html|htm|php|aspx|asp|jsp)(?=$|[?#/&;])", re.IGNORECASE)
_UNSAFE_CHARS_RE = re.compile(r"[/\\:?&=#%+,;'\"*<>| ]")
_REPEATED_UNDERSCORE_RE = re.compile(r"_+")

_REJECTED_SCHEMES = ("javascript:", "mailto:", "tel:", "data:")


def check_and_fix_url(url: str, base_url: str) -> Optional[str]:
    """Return an absolute http(s) URL for `url`, or None if it cannot be fetched.

    Relative links are resolved against `base_url`. Script, mail and
    fragment-only links are rejected.
    """
    if not url:
        return None
    url = url.strip()
    if not url or url.startswith("#"):
        return None
    if url.lower().startswith(_REJECTED_SCHEMES):
        return None
    parsed = urlparse(url)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return url
    if parsed.scheme and parsed.scheme not in ("http", "https"):
        return None
    fixed = urljoin(base_url, url)
    if urlparse(fixed).scheme not in ("http", "https"):
        return None
    return fixed


def sanitise_url_resource(url: str) -> str:
    """Path (and query) of the URL, made safe for use inside a file name."""
    parsed = urlparse(url)
    resource = parsed.path.lstrip("/")
    if parsed.query:
        resource = f"{resource}?{parsed.query}"
    if not resource and not parsed.netloc:
        resource = url
    resource = _WEB_SUFFIX_RE.sub("", resource)
    resource = _UNSAFE_CHARS_RE.sub("_", resource)
    resource = _REPEATED_UNDERSCORE_RE.sub("_", resource).strip("_")
    return resource or "index"


def make_unique_filename(doc, extension: str) -> str:
    """Build `{module}_{section}_{resource}_{hash}_{publish_date}.{ext}` for a Document."""
    resource = sanitise_url_resource(doc.url)[-MAX_RESOURCE_CHARS:]
    module = _UNSAFE_CHARS_RE.sub("_", doc.module)
    section = _UNSAFE_CHARS_RE.sub("_", doc.section_name)
    return f"{module}_{section}_{resource}_{url_hash(doc.url)}_{doc.publish_date}.{extension}"
