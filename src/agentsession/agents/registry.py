"""Agent registry: registered definitions plus on-disk discovery."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from agentsession.agents.loader import (
    AGENT_FILE_SUFFIXES,
    AgentNotFoundError,
    load_agent_file,
)
from agentsession.agents.schema import AgentDefinition
from agentsession.logging import get_logger

log = get_logger("agents")


@runtime_checkable
class AgentSource(Protocol):
    """What executors need from an agent provider."""

    async def load(self, agent_id: str) -> AgentDefinition:
        """Return the definition for ``agent_id``.

        Raises:
            AgentLoadError: If it cannot be found, read or parsed.
        """
        ...


class AgentRegistry:
    """Resolves agent ids to definitions.

    Explicitly registered definitions win; otherwise ``<id>.md``, ``<id>.yaml``
    or ``<id>.yml`` is looked up in each search path in order. Loaded files are
    cached.
    """

    def __init__(self, search_paths: list[str | Path] | None = None) -> None:
        self._search_paths = [Path(p).expanduser() for p in (search_paths or [])]
        self._agents: dict[str, AgentDefinition] = {}

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def add_search_path(self, path: str | Path) -> None:
        self._search_paths.append(Path(path).expanduser())

    def register(self, definition: AgentDefinition) -> None:
        self._agents[definition.id] = definition

    def get(self, agent_id: str) -> AgentDefinition | None:
        return self._agents.get(agent_id)

    def _find_file(self, agent_id: str) -> Path | None:
        for directory in self._search_paths:
            for suffix in AGENT_FILE_SUFFIXES:
                candidate = directory / f"{agent_id}{suffix}"
                if candidate.is_file():
                    return candidate
        return None

    async def load(self, agent_id: str) -> AgentDefinition:
        """Resolve an agent id.

        Raises:
            AgentNotFoundError: If no registered agent or file matches.
            AgentLoadError: If the file exists but cannot be read or parsed.
        """
        definition = self._agents.get(agent_id)
        if definition is not None:
            return definition

        path = self._find_file(agent_id)
        if path is None:
            raise AgentNotFoundError(f"Agent not found: {agent_id}")

        definition = load_agent_file(path)
        self._agents[agent_id] = definition
        return definition

    def list_agents(self) -> list[str]:
        """Ids of registered agents and agent files on the search paths."""
        ids = set(self._agents)
        for directory in self._search_paths:
            if not directory.is_dir():
                continue
            for entry in directory.iterdir():
                if entry.suffix.lower() in AGENT_FILE_SUFFIXES and entry.is_file():
                    ids.add(entry.stem)
        return sorted(ids)
