"""Agent definitions, loading and lookup."""

from agentsession.agents.loader import (
    AgentLoadError,
    AgentNotFoundError,
    AgentParseError,
    load_agent_file,
    load_agents_from_directory,
    parse_agent,
)
from agentsession.agents.registry import AgentRegistry, AgentSource
from agentsession.agents.schema import (
    AgentCommand,
    AgentDefinition,
    AgentDependencies,
    AgentInfo,
    Persona,
)

__all__ = [
    "AgentCommand",
    "AgentDefinition",
    "AgentDependencies",
    "AgentInfo",
    "AgentLoadError",
    "AgentNotFoundError",
    "AgentParseError",
    "AgentRegistry",
    "AgentSource",
    "Persona",
    "load_agent_file",
    "load_agents_from_directory",
    "parse_agent",
]
