"""Configuration schema dataclasses for agentsession.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class LLMConfig:
    """Model provider configuration."""

    model: str = "claude-sonnet-4-20250514"
    api_base: str | None = None  # Custom endpoint
    api_key_env: str | None = None  # Env var holding the key; litellm defaults otherwise
    max_tokens: int = 4096
    temperature: float | None = None


@dataclass
class SessionDefaultsConfig:
    """Defaults applied to new sessions and conversations.

    Example config.yaml:
        session:
          cost_limit: 2.5
          pause_timeout: 600
          auto_save: true
          warning_thresholds: [0.5, 0.75, 0.9]
    """

    cost_limit: float | None = None  # None = unlimited
    pause_timeout: float | None = 300.0  # Seconds; None = wait indefinitely
    auto_save: bool = False
    currency: str = "USD"
    warning_thresholds: list[float] = field(default_factory=lambda: [0.5, 0.75, 0.9])


class StorageType(Enum):
    """Which storage adapter the client builds when none is supplied."""

    NONE = "none"
    MEMORY = "memory"
    FILESYSTEM = "filesystem"


@dataclass
class StorageConfig:
    """Document and session-state storage configuration."""

    type: StorageType = StorageType.NONE
    path: str | None = None  # Base directory for the filesystem adapter


@dataclass
class AgentsConfig:
    """Where agent definition files are discovered."""

    paths: list[str] = field(default_factory=list)


@dataclass
class ToolsConfig:
    """Virtual sandbox tool settings."""

    allowed_commands: list[str] = field(
        default_factory=lambda: ["mkdir", "ls", "pwd", "echo"]
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0..4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    session: SessionDefaultsConfig = field(default_factory=SessionDefaultsConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    agents: AgentsConfig = field(default_factory=AgentsConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are kept for extensions
    extra: dict[str, Any] = field(default_factory=dict)
