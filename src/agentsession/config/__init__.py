"""Configuration management for agentsession.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/agentsession/ or %PROGRAMDATA%)
- User-level config (~/.config/agentsession/ or %APPDATA%)
- Project-level config ($project_root/.agentsession/)
- Environment variable overrides (highest priority)

Example usage:
    from agentsession.config import load_config

    config = load_config(project_root="/path/to/project")
    print(config.llm.model)
    print(config.session.cost_limit)
"""

from agentsession.config.loader import (
    get_config,
    load_config,
    reset_config,
)
from agentsession.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
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
from agentsession.config.secrets import (
    MissingSecretError,
    clear_secret_cache,
    fetch_secret,
    require_secret,
)

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "LLMConfig",
    "SessionDefaultsConfig",
    "StorageConfig",
    "StorageType",
    "AgentsConfig",
    "ToolsConfig",
    "LoggingConfig",
    "fetch_secret",
    "require_secret",
    "clear_secret_cache",
    "MissingSecretError",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
