"""Retriever registry.

Adding a new retriever:
1) implement a Retriever subclass in `newslookout.sources.*`
2) register it here under its plugin name (static) OR use register_retriever() (dynamic)
3) reference it in the `plugins` array of the configuration file with type = "retriever"

Each retriever runs on its own thread; adding one has no effect on the others.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Optional

from ..config import AppConfig
from .base import Retriever
from .offline_docs import OfflineDocsRetriever

RetrieverFactory = Callable[[Optional[Dict[str, Any]], AppConfig], Retriever]


# Lazy import: the HTML retrievers pull in BeautifulSoup and PyMuPDF
def _make_rbi(options: Optional[Dict[str, Any]], app_config: AppConfig) -> Retriever:
    try:
        from .rbi import RbiRetriever
    except ImportError as e:
        raise ImportError(
            f"The RBI retriever requires additional dependencies. "
            f"Install with: pip install requests beautifulsoup4 pymupdf. "
            f"Original error: {e}"
        )
    return RbiRetriever(options, app_config)


# Static registry (built-in retrievers)
_STATIC_REGISTRY: Dict[str, RetrieverFactory] = {
    "mod_en_in_rbi": _make_rbi,
    "mod_offline_docs": lambda options, app_config: OfflineDocsRetriever(options, app_config),
}

# Dynamic registry (plugins/extensions, tests)
_DYNAMIC_REGISTRY: Dict[str, RetrieverFactory] = {}


def register_retriever(name: str, factory: RetrieverFactory) -> None:
    """Register a retriever factory under a plugin name.

    Example:
        from newslookout.sources.registry import register_retriever

        register_retriever("mod_my_site", lambda options, cfg: MySiteRetriever(options, cfg))
    """
    if name in _STATIC_REGISTRY:
        raise ValueError(f"Retriever '{name}' is already registered statically. Use a different name.")
    _DYNAMIC_REGISTRY[name] = factory


def unregister_retriever(name: str) -> None:
    _DYNAMIC_REGISTRY.pop(name, None)


def list_retrievers() -> Dict[str, str]:
    """List all registered retrievers (static + dynamic)."""
    out = {name: "static" for name in _STATIC_REGISTRY}
    out.update({name: "dynamic" for name in _DYNAMIC_REGISTRY})
    return out


def is_registered(name: str) -> bool:
    return name in _STATIC_REGISTRY or name in _DYNAMIC_REGISTRY


def make_retriever(name: str, options: Optional[Dict[str, Any]], app_config: AppConfig) -> Retriever:
    """Create a retriever instance; its options are validated here, once."""
    if name in _STATIC_REGISTRY:
        return _STATIC_REGISTRY[name](options, app_config)
    if name in _DYNAMIC_REGISTRY:
        return _DYNAMIC_REGISTRY[name](options, app_config)
    available = list(_STATIC_REGISTRY.keys()) + list(_DYNAMIC_REGISTRY.keys())
    raise ValueError(
        f"Unknown retriever: {name}. "
        f"Available: {available}. "
        f"Register dynamically with register_retriever() or add to registry.py"
    )
