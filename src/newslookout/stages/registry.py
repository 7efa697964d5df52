"""Processor registry.

Processors are configured by name in the `plugins` array with
type = "data_processor"; their position in the chain comes from `priority`.

Adding a new processor:
1) implement a Processor subclass in `newslookout.stages.*`
2) register it here (static) OR call register_processor() (dynamic)
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Optional

from ..config import AppConfig
from .base import Processor
from .cmdline import Cmdline
from .llm import ChatGPTProcessor, GeminiProcessor, OllamaProcessor, Summarize
from .persist import PersistData
from .split_text import SplitText
from .stubs import Classify, DataPrep, Dedupe, SolrSubmit, VectorStore

ProcessorFactory = Callable[[Optional[Dict[str, Any]], AppConfig], Processor]

_STATIC_REGISTRY: Dict[str, ProcessorFactory] = {
    cls.name: cls
    for cls in (
        SplitText,
        OllamaProcessor,
        ChatGPTProcessor,
        GeminiProcessor,
        Summarize,
        PersistData,
        Cmdline,
        Classify,
        Dedupe,
        VectorStore,
        SolrSubmit,
        DataPrep,
    )
}

_DYNAMIC_REGISTRY: Dict[str, ProcessorFactory] = {}


def register_processor(name: str, factory: ProcessorFactory) -> None:
    """Register a processor factory under a plugin name."""
    if name in _STATIC_REGISTRY:
        raise ValueError(f"Processor '{name}' is already registered statically. Use a different name.")
    _DYNAMIC_REGISTRY[name] = factory


def unregister_processor(name: str) -> None:
    _DYNAMIC_REGISTRY.pop(name, None)


def list_processors() -> Dict[str, str]:
    out = {name: "static" for name in _STATIC_REGISTRY}
    out.update({name: "dynamic" for name in _DYNAMIC_REGISTRY})
    return out


def is_registered(name: str) -> bool:
    return name in _STATIC_REGISTRY or name in _DYNAMIC_REGISTRY


def make_processor(name: str, options: Optional[Dict[str, Any]], app_config: AppConfig) -> Processor:
    """Create a processor instance; its options are validated here, once."""
    factory = _STATIC_REGISTRY.get(name) or _DYNAMIC_REGISTRY.get(name)
    if factory is None:
        available = list(_STATIC_REGISTRY.keys()) + list(_DYNAMIC_REGISTRY.keys())
        raise ValueError(
            f"Unknown processor: {name}. "
            f"Available: {available}. "
            f"Register dynamically with register_processor() or add to registry.py"
        )
    return factory(options, app_config)
