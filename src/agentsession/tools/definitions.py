"""Tool schemas exposed to the model."""

from __future__ import annotations

from agentsession.core.llm.provider import ToolDefinition

READ_FILE = "read_file"
WRITE_FILE = "write_file"
EDIT_FILE = "edit_file"
LIST_FILES = "list_files"
GLOB_PATTERN = "glob_pattern"
GREP_SEARCH = "grep_search"
BASH_COMMAND = "bash_command"

# Handled by the turn engine rather than the sandbox
ASK_USER = "ask_user"
INVOKE_AGENT = "invoke_agent"

RESERVED_TOOLS = frozenset({ASK_USER, INVOKE_AGENT})


def _schema(properties: dict[str, dict[str, object]], required: list[str]) -> dict[str, object]:
    return {"type": "object", "properties": properties, "required": required}


def _string(description: str) -> dict[str, object]:
    return {"type": "string", "description": description}


def sandbox_tool_definitions(allowed_commands: tuple[str, ...] | list[str]) -> list[ToolDefinition]:
    """Schemas for the virtual document space tools."""
    commands = ", ".join(allowed_commands)
    return [
        ToolDefinition(
            name=READ_FILE,
            description="Read the contents of a file from the virtual filesystem.",
            input_schema=_schema(
                {"file_path": _string("Absolute path to the file (e.g., /docs/prd.md)")},
                ["file_path"],
            ),
        ),
        ToolDefinition(
            name=WRITE_FILE,
            description="Create or overwrite a file in the virtual filesystem.",
            input_schema=_schema(
                {
                    "file_path": _string("Absolute path to the file (e.g., /docs/prd.md)"),
                    "content": _string("Full content to write"),
                },
                ["file_path", "content"],
            ),
        ),
        ToolDefinition(
            name=EDIT_FILE,
            description=(
                "Replace one exact, unique occurrence of old_string with new_string in a file."
            ),
            input_schema=_schema(
                {
                    "file_path": _string("Absolute path to the file"),
                    "old_string": _string("Exact text to replace; must appear exactly once"),
                    "new_string": _string("Replacement text"),
                },
                ["file_path", "old_string", "new_string"],
            ),
        ),
        ToolDefinition(
            name=LIST_FILES,
            description="List files directly inside a directory.",
            input_schema=_schema(
                {"path": _string("Directory path to list (e.g., /docs)")},
                ["path"],
            ),
        ),
        ToolDefinition(
            name=GLOB_PATTERN,
            description=(
                "Find files by glob pattern. '*' matches within one path segment, "
                "'**' matches across directories."
            ),
            input_schema=_schema(
                {
                    "pattern": _string("Glob pattern (e.g., /docs/*.md or **/*.yaml)"),
                    "path": _string("Base directory for relative patterns (default /)"),
                },
                ["pattern"],
            ),
        ),
        ToolDefinition(
            name=GREP_SEARCH,
            description="Search file contents with a regular expression.",
            input_schema=_schema(
                {
                    "pattern": _string("Regular expression to search for"),
                    "path": _string("Directory to search under (default /)"),
                    "glob": _string("Optional glob filter for file paths"),
                },
                ["pattern"],
            ),
        ),
        ToolDefinition(
            name=BASH_COMMAND,
            description=f"Execute a safe shell command. Only these are supported: {commands}.",
            input_schema=_schema(
                {
                    "command": _string("Command to execute"),
                    "description": _string("Brief description of what this command does"),
                },
                ["command"],
            ),
        ),
    ]


ASK_USER_TOOL = ToolDefinition(
    name=ASK_USER,
    description=(
        "Ask the user a clarifying question and wait for the answer. "
        "Use this whenever you need information only the user can provide."
    ),
    input_schema=_schema(
        {
            "question": _string("The question to ask"),
            "context": _string("Optional context explaining why you are asking"),
        },
        ["question"],
    ),
)


def invoke_agent_definition(agent_ids: list[str]) -> ToolDefinition:
    """Schema for delegating a command to another agent."""
    agent_id: dict[str, object] = _string("Id of the agent to invoke")
    if agent_ids:
        agent_id["enum"] = list(agent_ids)
    return ToolDefinition(
        name=INVOKE_AGENT,
        description=(
            "Delegate a command to a specialist agent. The agent runs to completion "
            "and its final response is returned."
        ),
        input_schema=_schema(
            {
                "agent_id": agent_id,
                "command": _string("Command or request for the agent"),
                "context": {"type": "object", "description": "Optional extra context"},
            },
            ["agent_id", "command"],
        ),
    )
