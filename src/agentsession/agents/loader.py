"""Load agent definitions from markdown or YAML files.

Markdown agents carry their definition either as YAML frontmatter or as the
first fenced ```yaml block in the body. Plain ``.yaml``/``.yml`` files are the
definition mapping itself.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from agentsession.agents.schema import AgentDefinition
from agentsession.logging import get_logger

log = get_logger("agents")

_FRONTMATTER_PATTERN = re.compile(
    r"^---\s*\n(.*?)\n---\s*\n?(.*)$",
    re.DOTALL,
)
_YAML_FENCE_PATTERN = re.compile(r"```ya?ml\s*\n(.*?)\n```", re.DOTALL)

AGENT_FILE_SUFFIXES = (".md", ".yaml", ".yml")


class AgentLoadError(Exception):
    """An agent definition could not be read."""


class AgentParseError(AgentLoadError):
    """An agent file was read but its definition is invalid."""


class AgentNotFoundError(AgentLoadError):
    """No agent with the requested id is known."""


def _extract_yaml(content: str, suffix: str) -> str:
    if suffix in (".yaml", ".yml"):
        return content
    match = _FRONTMATTER_PATTERN.match(content)
    if match:
        return match.group(1)
    fence = _YAML_FENCE_PATTERN.search(content)
    if fence:
        return fence.group(1)
    raise ValueError("No YAML frontmatter or ```yaml block found")


def parse_agent(content: str, source: str = "<string>", suffix: str = ".md") -> AgentDefinition:
    """Parse agent text into a definition.

    Raises:
        AgentParseError: If the YAML is missing, malformed or incomplete.
    """
    try:
        data: Any = yaml.safe_load(_extract_yaml(content, suffix))
        if not isinstance(data, dict):
            raise ValueError("Agent definition must be a YAML mapping")
        return AgentDefinition.from_dict(data, source_path=source)
    except (ValueError, yaml.YAMLError) as e:
        raise AgentParseError(f"Failed to parse agent definition in {source}: {e}") from e


def load_agent_file(path: str | Path) -> AgentDefinition:
    """Read and parse one agent file.

    Raises:
        AgentLoadError: If the file cannot be read.
        AgentParseError: If its contents are invalid.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise AgentLoadError(f"Failed to load agent from {path}: {e}") from e
    definition = parse_agent(content, source=str(path), suffix=path.suffix.lower())
    log.debug("Loaded agent %s from %s", definition.id, path)
    return definition


def load_agents_from_directory(directory: str | Path) -> list[AgentDefinition]:
    """Load every agent file in a directory (non-recursive).

    Files that fail to parse are logged and skipped.

    Raises:
        AgentLoadError: If the directory cannot be listed.
    """
    directory = Path(directory)
    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        raise AgentLoadError(f"Failed to load agents from {directory}: {e}") from e

    agents: list[AgentDefinition] = []
    for entry in entries:
        if entry.suffix.lower() not in AGENT_FILE_SUFFIXES or not entry.is_file():
            continue
        try:
            agents.append(load_agent_file(entry))
        except AgentLoadError as e:
            log.warning("Skipping agent file %s: %s", entry, e)
    return agents
