"""Agent persona definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class AgentInfo:
    """Identity block of an agent definition."""

    id: str
    name: str
    title: str | None = None
    icon: str | None = None
    when_to_use: str | None = None
    customization: str | None = None
    model: str | None = None


@dataclass
class Persona:
    role: str
    style: str = ""
    identity: str = ""
    focus: str = ""
    core_principles: list[str] = field(default_factory=list)


@dataclass
class AgentCommand:
    """A ``*command`` the agent advertises to users."""

    name: str
    description: str = ""


@dataclass
class AgentDependencies:
    tasks: list[str] = field(default_factory=list)
    templates: list[str] = field(default_factory=list)
    checklists: list[str] = field(default_factory=list)
    data: list[str] = field(default_factory=list)

    def all_paths(self) -> list[str]:
        return [*self.tasks, *self.templates, *self.checklists, *self.data]


@dataclass
class AgentDefinition:
    """A loaded agent: identity, persona, commands and dependencies.

    Attributes:
        agent: Identity block (id, name, title, ...)
        persona: Role and style guidance; optional for utility agents
        commands: Advertised commands
        dependencies: Task/template/checklist/data files the agent relies on
        activation_instructions: Ordered instructions applied on activation
        source_path: File the definition came from, if any
    """

    agent: AgentInfo
    persona: Persona | None = None
    commands: list[AgentCommand] = field(default_factory=list)
    dependencies: AgentDependencies = field(default_factory=AgentDependencies)
    activation_instructions: list[str] = field(default_factory=list)
    source_path: str | None = None

    @property
    def id(self) -> str:
        return self.agent.id

    @property
    def name(self) -> str:
        return self.agent.name

    @classmethod
    def from_dict(cls, data: dict[str, Any], source_path: str | None = None) -> AgentDefinition:
        """Build from the parsed YAML mapping.

        Raises:
            ValueError: If required fields are missing or mistyped.
        """
        agent_data = data.get("agent")
        if not isinstance(agent_data, dict):
            raise ValueError("Missing 'agent' section")
        for required in ("id", "name"):
            if not agent_data.get(required):
                raise ValueError(f"Missing required field 'agent.{required}'")

        agent = AgentInfo(
            id=str(agent_data["id"]),
            name=str(agent_data["name"]),
            title=agent_data.get("title"),
            icon=agent_data.get("icon"),
            when_to_use=agent_data.get("whenToUse") or agent_data.get("when_to_use"),
            customization=agent_data.get("customization"),
            model=agent_data.get("model"),
        )

        persona = None
        persona_data = data.get("persona")
        if persona_data is not None:
            if not isinstance(persona_data, dict) or not persona_data.get("role"):
                raise ValueError("Missing required field 'persona.role'")
            principles = persona_data.get("core_principles") or []
            if not isinstance(principles, list):
                raise ValueError("'persona.core_principles' must be a list")
            persona = Persona(
                role=str(persona_data["role"]),
                style=str(persona_data.get("style", "")),
                identity=str(persona_data.get("identity", "")),
                focus=str(persona_data.get("focus", "")),
                core_principles=[str(p) for p in principles],
            )

        deps_data = data.get("dependencies") or {}
        if not isinstance(deps_data, dict):
            raise ValueError("'dependencies' must be a mapping")
        dependencies = AgentDependencies(
            tasks=_string_list(deps_data.get("tasks"), "dependencies.tasks"),
            templates=_string_list(deps_data.get("templates"), "dependencies.templates"),
            checklists=_string_list(deps_data.get("checklists"), "dependencies.checklists"),
            data=_string_list(deps_data.get("data"), "dependencies.data"),
        )

        activation = data.get("activation_instructions") or data.get("activation-instructions")

        return cls(
            agent=agent,
            persona=persona,
            commands=_parse_commands(data.get("commands")),
            dependencies=dependencies,
            activation_instructions=_string_list(activation, "activation_instructions"),
            source_path=source_path,
        )


def _string_list(value: Any, label: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{label}' must be a list")
    return [str(v) for v in value]


def _parse_commands(value: Any) -> list[AgentCommand]:
    """Accept ``["help: Show help"]``, ``[{"help": "Show help"}]`` or a mapping."""
    if value is None:
        return []
    if isinstance(value, dict):
        return [AgentCommand(str(k), str(v or "")) for k, v in value.items()]
    if not isinstance(value, list):
        raise ValueError("'commands' must be a list")

    commands: list[AgentCommand] = []
    for item in value:
        if isinstance(item, dict):
            commands.extend(AgentCommand(str(k), str(v or "")) for k, v in item.items())
        else:
            name, _, description = str(item).partition(":")
            commands.append(AgentCommand(name.strip().lstrip("*"), description.strip()))
    return commands
