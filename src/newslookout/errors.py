"""Exception types shared across the pipeline.

Only `ConfigError` is allowed to reach the process exit; everything else is
logged and handled inside the stage that raised it.
"""

from __future__ import annotations


class NewsLookoutError(Exception):
    """Base class for all newslookout errors."""


class ConfigError(NewsLookoutError):
    """Missing or invalid configuration, fatal at startup."""


class ChannelClosed(NewsLookoutError):
    """Raised when sending into a channel whose receiver (or sender) was closed."""


class FetchError(NewsLookoutError):
    """Network retrieval failed after all retries."""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not fetch {url}: {reason}" if reason else f"Could not fetch {url}")
