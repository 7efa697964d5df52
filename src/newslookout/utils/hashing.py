"""Hashing utilities.

URL hashes go into file names, so they must be deterministic across runs and
machines. Python's built-in `hash()` is salted per process and cannot be used.
"""

import xxhash


def url_hash(url: str) -> int:
    """64-bit xxHash of the URL as an unsigned integer."""
    return xxhash.xxh64_intdigest(url.encode("utf-8", errors="ignore"))
