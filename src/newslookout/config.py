"""Application configuration.

The configuration file is TOML (YAML is accepted too, by file extension).
It is read once at startup into an `AppConfig`; every stage receives the same
instance and treats it as read-only.

Environment overrides:
- `NEWSLOOKOUT_<KEY>=value` replaces top-level `<key>` (case-insensitive)
- the value is converted to the type of the value it replaces (bool/int/float)

Plugins are declared as an array of tables:

    plugins = [
      {name = "mod_en_in_rbi", type = "retriever", enabled = true, priority = 1, maxpages = 2},
      {name = "split_text", type = "data_processor", enabled = true, priority = 1},
    ]

Everything apart from name/type/enabled/priority is passed to the plugin as
its local options and validated by the plugin's own options dataclass.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional
import logging
import os
import sys

import yaml

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .errors import ConfigError
from .utils.network import DEFAULT_USER_AGENT, NetworkParameters

log = logging.getLogger("newslookout.config")

ENV_PREFIX = "NEWSLOOKOUT_"

PLUGIN_TYPE_RETRIEVER = "retriever"
PLUGIN_TYPE_PROCESSOR = "data_processor"
PLUGIN_TYPES = (PLUGIN_TYPE_RETRIEVER, PLUGIN_TYPE_PROCESSOR)

DEFAULT_SUMMARY_PART_CONTEXT = "Summarise the following text concisely.\n\nTEXT:\n"
DEFAULT_INSIGHTS_PART_CONTEXT = "Read the following text and extract actions from it.\n\nTEXT:\n"
DEFAULT_SUMMARY_EXEC_CONTEXT = "Summarise the following text concisely.\n\nTEXT:\n"
DEFAULT_SYSTEM_CONTEXT = "You are an expert in analysing news and documents."

_RESERVED_PLUGIN_KEYS = ("name", "type", "enabled", "priority")


@dataclass
class PluginSpec:
    name: str
    type: str
    enabled: bool = True
    priority: int = 99
    options: Dict[str, Any] = field(default_factory=dict)
    position: int = 0  # order in the configuration file

    @property
    def is_retriever(self) -> bool:
        return self.type == PLUGIN_TYPE_RETRIEVER

    @property
    def is_processor(self) -> bool:
        return self.type == PLUGIN_TYPE_PROCESSOR


@dataclass
class AppConfig:
    data_dir: str = "."
    completed_urls_datafile: str = "newslookout_urls.db"
    models_dir: str = "models"

    # logging
    log_file: Optional[str] = None
    log_level: str = "INFO"
    max_logfile_size: int = 10 * 1024 * 1024
    logfile_backup_count: int = 30
    pid_file: Optional[str] = None

    # network
    fetch_timeout: float = 60
    connect_timeout: float = 10
    retry_count: int = 3
    retry_wait_fixed_sec: float = 3
    user_agent: str = DEFAULT_USER_AGENT
    proxy_server_url: Optional[str] = None

    # drain
    batch_size: int = 100
    show_progress: bool = True

    # LLM prompt contexts
    summary_part_context: str = DEFAULT_SUMMARY_PART_CONTEXT
    insights_part_context: str = DEFAULT_INSIGHTS_PART_CONTEXT
    summary_exec_context: str = DEFAULT_SUMMARY_EXEC_CONTEXT
    system_context: str = DEFAULT_SYSTEM_CONTEXT

    plugins: List[PluginSpec] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    def network_parameters(self) -> NetworkParameters:
        return NetworkParameters(
            fetch_timeout=self.fetch_timeout,
            connect_timeout=self.connect_timeout,
            retry_count=self.retry_count,
            retry_wait_fixed_sec=self.retry_wait_fixed_sec,
            user_agent=self.user_agent,
            proxy_server_url=self.proxy_server_url,
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)


def _read_file(path: str) -> Dict[str, Any]:
    ext = os.path.splitext(path)[1].lower()
    try:
        if ext in (".yaml", ".yml"):
            with open(path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot parse configuration file {path}: {e}") from e


def _coerce(value: str, like: Any) -> Any:
    if isinstance(like, bool):
        if value.strip().lower() in ("1", "true", "yes", "on"):
            return True
        if value.strip().lower() in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"Expected a boolean, got {value!r}")
    try:
        if isinstance(like, int):
            return int(value)
        if isinstance(like, float):
            return float(value)
    except ValueError as e:
        raise ConfigError(f"Cannot convert {value!r} to {type(like).__name__}") from e
    return value


def apply_env_overrides(raw: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return a copy of `raw` with NEWSLOOKOUT_* environment values applied."""
    environ = os.environ if environ is None else environ
    out = dict(raw)
    for env_key, value in environ.items():
        if not env_key.upper().startswith(ENV_PREFIX):
            continue
        key = env_key[len(ENV_PREFIX):].lower()
        if not key:
            continue
        existing = out.get(key)
        if isinstance(existing, (list, dict)):
            log.warning(f"Ignoring environment override {env_key}: {key} is not a scalar setting")
            continue
        out[key] = _coerce(value, existing) if existing is not None else value
        log.debug(f"Configuration key {key} overridden from environment")
    return out


def _parse_plugins(raw_plugins: Any) -> List[PluginSpec]:
    if raw_plugins is None:
        return []
    if not isinstance(raw_plugins, list):
        raise ConfigError("'plugins' must be an array of tables")
    specs = []
    for i, entry in enumerate(raw_plugins):
        if not isinstance(entry, dict):
            raise ConfigError(f"plugins[{i}] must be a table, got {type(entry).__name__}")
        name = entry.get("name")
        if not name or not isinstance(name, str):
            raise ConfigError(f"plugins[{i}] has no name")
        ptype = entry.get("type", PLUGIN_TYPE_RETRIEVER)
        if ptype not in PLUGIN_TYPES:
            raise ConfigError(f"Plugin {name}: type must be one of {list(PLUGIN_TYPES)}, got {ptype!r}")
        enabled = entry.get("enabled", False)
        if not isinstance(enabled, bool):
            raise ConfigError(f"Plugin {name}: enabled must be true or false, got {enabled!r}")
        priority = entry.get("priority", 99)
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ConfigError(f"Plugin {name}: priority must be an integer, got {priority!r}")
        options = {k: v for k, v in entry.items() if k not in _RESERVED_PLUGIN_KEYS}
        specs.append(PluginSpec(name=name, type=ptype, enabled=enabled,
                                priority=priority, options=options, position=i))
    return specs


def build_options(cls, options: Mapping[str, Any], plugin_name: str):
    """Instantiate a plugin options dataclass from its raw config table.

    Values are checked against the dataclass defaults: ints accept ints,
    floats accept numbers, bools accept bools only. Unknown keys are logged.
    """
    known = {f.name: f for f in fields(cls)}
    kwargs = {}
    for key, value in options.items():
        if key not in known:
            log.debug(f"Plugin {plugin_name}: ignoring unknown option {key}")
            continue
        default = getattr(cls(), key)
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"Plugin {plugin_name}: {key} must be true or false, got {value!r}")
        elif isinstance(default, int):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"Plugin {plugin_name}: {key} must be an integer, got {value!r}")
        elif isinstance(default, float):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"Plugin {plugin_name}: {key} must be a number, got {value!r}")
            value = float(value)
        elif isinstance(default, str):
            if not isinstance(value, str):
                raise ConfigError(f"Plugin {plugin_name}: {key} must be a string, got {value!r}")
        kwargs[key] = value
    return cls(**kwargs)


def _resolve_data_dir(value: Any) -> str:
    if value and os.path.isdir(str(value)):
        return str(value)
    cwd = os.getcwd()
    if value:
        log.warning(f"data_dir {value} is not a directory, using current directory {cwd}")
    return cwd


def parse_config(raw: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build an AppConfig from an already parsed mapping."""
    raw = apply_env_overrides(raw, environ)
    defaults = AppConfig()
    cfg = AppConfig(raw=raw)
    scalar_fields = [
        "completed_urls_datafile", "models_dir", "log_file", "log_level", "max_logfile_size",
        "logfile_backup_count", "pid_file", "fetch_timeout", "connect_timeout", "retry_count",
        "retry_wait_fixed_sec", "user_agent", "proxy_server_url", "batch_size", "show_progress",
        "summary_part_context", "insights_part_context", "summary_exec_context", "system_context",
    ]
    for name in scalar_fields:
        if name not in raw or raw[name] is None:
            continue
        like = getattr(defaults, name)
        value = raw[name]
        if like is not None and isinstance(value, str) and not isinstance(like, str):
            value = _coerce(value, like)
        setattr(cfg, name, value)
    cfg.data_dir = _resolve_data_dir(raw.get("data_dir"))
    if int(cfg.batch_size) < 1:
        raise ConfigError(f"batch_size must be at least 1, got {cfg.batch_size}")
    cfg.plugins = _parse_plugins(raw.get("plugins"))
    return cfg


def load_config(path: str, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    if not os.path.isfile(path):
        raise ConfigError(f"Configuration file not found: {path}")
    return parse_config(_read_file(path), environ)
