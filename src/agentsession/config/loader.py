"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reset support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from agentsession.config.merge import merge_configs
from agentsession.config.paths import get_config_paths
from agentsession.config.schema import (
    AgentsConfig,
    Config,
    LLMConfig,
    LoggingConfig,
    SessionDefaultsConfig,
    StorageConfig,
    StorageType,
    ToolsConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("agentsession.config")

_cached_config: Config | None = None

_KNOWN_SECTIONS = {"llm", "session", "storage", "agents", "tools", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning an empty dict if missing or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        _log.warning("Ignoring non-numeric %s=%r", name, raw)
        return None


def env_overrides() -> dict[str, Any]:
    """Build a config dict from environment variables.

    API keys are NOT loaded here; use fetch_secret() for those.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("AGENTSESSION_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    model = os.environ.get("AGENTSESSION_MODEL")
    if model:
        overrides.setdefault("llm", {})["model"] = model

    cost_limit = _env_float("AGENTSESSION_COST_LIMIT")
    if cost_limit is not None:
        overrides.setdefault("session", {})["cost_limit"] = cost_limit

    storage_path = os.environ.get("AGENTSESSION_STORAGE_PATH")
    if storage_path:
        overrides["storage"] = {"type": StorageType.FILESYSTEM.value, "path": storage_path}

    return overrides


def _parse_storage_type(raw: Any) -> StorageType:
    if raw is None:
        return StorageType.NONE
    try:
        return StorageType(str(raw).lower())
    except ValueError:
        _log.warning("Unknown storage type %r, storage disabled", raw)
        return StorageType.NONE


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass."""
    llm_data = data.get("llm", {}) or {}
    llm_defaults = LLMConfig()
    llm = LLMConfig(
        model=llm_data.get("model", llm_defaults.model),
        api_base=llm_data.get("api_base"),
        api_key_env=llm_data.get("api_key_env"),
        max_tokens=llm_data.get("max_tokens", llm_defaults.max_tokens),
        temperature=llm_data.get("temperature"),
    )

    session_data = data.get("session", {}) or {}
    session_defaults = SessionDefaultsConfig()
    thresholds = session_data.get("warning_thresholds", session_defaults.warning_thresholds)
    session = SessionDefaultsConfig(
        cost_limit=session_data.get("cost_limit"),
        pause_timeout=session_data.get("pause_timeout", session_defaults.pause_timeout),
        auto_save=bool(session_data.get("auto_save", False)),
        currency=session_data.get("currency", session_defaults.currency),
        warning_thresholds=[float(t) for t in thresholds if isinstance(t, (int, float))],
    )

    storage_data = data.get("storage", {}) or {}
    storage = StorageConfig(
        type=_parse_storage_type(storage_data.get("type")),
        path=storage_data.get("path"),
    )

    agents_data = data.get("agents", {}) or {}
    agents = AgentsConfig(
        paths=[p for p in agents_data.get("paths", []) if isinstance(p, str)],
    )

    tools_data = data.get("tools", {}) or {}
    tools = ToolsConfig(
        allowed_commands=tools_data.get("allowed_commands", ToolsConfig().allowed_commands),
    )

    log_data = data.get("logging", {}) or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(
        llm=llm,
        session=session,
        storage=storage,
        agents=agents,
        tools=tools,
        logging=logging_config,
        extra=extra,
    )


def load_config(project_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config ($project_root/.agentsession/config.yaml)
    3. User config
    4. System config

    Only the global config (no project_root) is cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []
    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config. Useful for tests."""
    global _cached_config
    _cached_config = None
