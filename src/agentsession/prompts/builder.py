"""Assemble the system prompt for an agent persona and its tools."""

from __future__ import annotations

import json

from agentsession.agents.schema import AgentDefinition
from agentsession.core.llm.provider import ToolDefinition

CLOSING_LINE = "Now, adopt this persona and await user commands."

DEFAULT_ACTIVATION = [
    "Greet the user in character and mention that *help lists your commands",
    "Wait for the user's command before starting any work",
]

_TOOL_EXAMPLES: dict[str, dict[str, object]] = {
    "read_file": {"file_path": "/docs/prd.md"},
    "write_file": {"file_path": "/docs/brief.md", "content": "# Brief\n\n..."},
    "edit_file": {"file_path": "/docs/brief.md", "old_string": "draft", "new_string": "final"},
    "list_files": {"path": "/docs"},
    "glob_pattern": {"pattern": "**/*.md"},
    "grep_search": {"pattern": "TODO", "path": "/docs"},
    "bash_command": {"command": "mkdir -p /docs/chapters", "description": "Create chapters dir"},
    "ask_user": {"question": "Which audience is this for?"},
    "invoke_agent": {"agent_id": "architect", "command": "*create-architecture"},
}


class SystemPromptBuilder:
    """Pure function object: (agent, tools) -> prompt text."""

    def __init__(
        self,
        base: str | None = None,
        tool_rules: str | None = None,
        workflow: str | None = None,
    ) -> None:
        from agentsession.prompts import load_prompt

        self._base = base if base is not None else load_prompt("base")
        self._tool_rules = tool_rules if tool_rules is not None else load_prompt("tool_rules")
        self._workflow = workflow if workflow is not None else load_prompt("workflow")

    def build(self, agent: AgentDefinition, tools: list[ToolDefinition]) -> str:
        sections = [
            self._base,
            "## Available Tools",
            self._format_tools(tools),
            "## Tool Usage Rules",
            self._tool_rules,
            "## Workflow",
            self._workflow,
            "## Agent Persona",
            self._format_persona(agent),
        ]
        if agent.commands:
            sections += ["## Available Commands", self._format_commands(agent)]
        sections += ["## Activation Instructions", self._format_activation(agent), CLOSING_LINE]
        return "\n\n".join(s for s in sections if s)

    @staticmethod
    def _format_tools(tools: list[ToolDefinition]) -> str:
        if not tools:
            return "(no tools available)"
        blocks = []
        for tool in tools:
            lines = [
                f"### {tool.name}",
                "",
                tool.description,
                "",
                "Input schema:",
                "```json",
                json.dumps(tool.input_schema, indent=2),
                "```",
            ]
            example = _TOOL_EXAMPLES.get(tool.name)
            if example is not None:
                lines += ["Example:", "```json", json.dumps(example, indent=2), "```"]
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    @staticmethod
    def _format_persona(agent: AgentDefinition) -> str:
        info, persona = agent.agent, agent.persona
        lines: list[str] = []
        if info.customization:
            lines += [info.customization.strip(), ""]

        lines.append(f"**Name:** {info.name}")
        if persona and persona.role:
            lines.append(f"**Role:** {persona.role}")
        if info.title:
            lines.append(f"**Title:** {info.title}")
        if info.icon:
            lines.append(f"**Icon:** {info.icon}")

        if persona:
            for label, value in (
                ("Style", persona.style),
                ("Identity", persona.identity),
                ("Focus", persona.focus),
            ):
                if value:
                    lines.append(f"**{label}:** {value}")
            if persona.core_principles:
                lines += ["", "**Core Principles:**"]
                lines += [f"- {p}" for p in persona.core_principles]
        return "\n".join(lines)

    @staticmethod
    def _format_commands(agent: AgentDefinition) -> str:
        lines = []
        for command in agent.commands:
            entry = f"- *{command.name}"
            if command.description:
                entry += f": {command.description}"
            lines.append(entry)
        return "\n".join(lines)

    @staticmethod
    def _format_activation(agent: AgentDefinition) -> str:
        steps = agent.activation_instructions or DEFAULT_ACTIVATION
        return "\n".join(f"{i}. {step}" for i, step in enumerate(steps, 1))
