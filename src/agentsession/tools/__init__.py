"""Virtual document space tools."""

from agentsession.tools.definitions import (
    ASK_USER,
    ASK_USER_TOOL,
    INVOKE_AGENT,
    RESERVED_TOOLS,
    invoke_agent_definition,
    sandbox_tool_definitions,
)
from agentsession.tools.sandbox import (
    Document,
    InvalidPathError,
    SandboxToolExecutor,
    ToolResult,
    VirtualFile,
    VirtualFileSystem,
    glob_match,
)

__all__ = [
    "ASK_USER",
    "ASK_USER_TOOL",
    "Document",
    "INVOKE_AGENT",
    "InvalidPathError",
    "RESERVED_TOOLS",
    "SandboxToolExecutor",
    "ToolResult",
    "VirtualFile",
    "VirtualFileSystem",
    "glob_match",
    "invoke_agent_definition",
    "sandbox_tool_definitions",
]
