"""Tests for the virtual document space and its tools."""

from __future__ import annotations

from typing import Any

import pytest

from agentsession.core.llm import tool_call
from agentsession.tools import (
    ASK_USER_TOOL,
    SandboxToolExecutor,
    ToolResult,
    VirtualFileSystem,
    glob_match,
    invoke_agent_definition,
)


@pytest.fixture
def executor() -> SandboxToolExecutor:
    vfs = VirtualFileSystem(
        {
            "/docs/prd.md": "# PRD\nGoals\nNon-goals\n",
            "/docs/arch/overview.md": "# Architecture\nservices: 3\n",
            "/docs/notes.txt": "remember the goals",
            "/readme.md": "hello",
        }
    )
    return SandboxToolExecutor(vfs)


async def run(executor: SandboxToolExecutor, name: str, **args: Any) -> ToolResult:
    return await executor.execute(tool_call("t", name, **args))


class TestVirtualFileSystem:
    """Test the in-memory namespace."""

    def test_write_keeps_created_at(self) -> None:
        vfs = VirtualFileSystem()
        first = vfs.write("/a.md", "one")
        second = vfs.write("/a.md", "two")

        assert second.created_at == first.created_at
        assert second.modified_at >= first.modified_at
        assert vfs.get("/a.md").content == "two"

    def test_sizes_are_bytes(self) -> None:
        vfs = VirtualFileSystem({"/a.md": "héllo", "/b.md": "abc"})
        assert vfs.get("/a.md").size == 6
        assert vfs.size == 9
        assert vfs.file_count == 2

    def test_documents_skip_directory_markers(self) -> None:
        vfs = VirtualFileSystem({"/z.md": "z", "/docs/.directory": "", "/a.md": "a"})

        assert [d.path for d in vfs.get_documents()] == ["/a.md", "/z.md"]
        assert "/docs/.directory" in vfs.to_dict()

    def test_initialize_merges(self) -> None:
        vfs = VirtualFileSystem({"/a.md": "a"})
        vfs.initialize_files({"/b.md": "b", "/a.md": "A"})

        assert vfs.to_dict() == {"/a.md": "A", "/b.md": "b"}

    def test_delete_and_clear(self) -> None:
        vfs = VirtualFileSystem({"/a.md": "a", "/b.md": "b"})

        assert vfs.delete("/a.md") is True
        assert vfs.delete("/a.md") is False
        vfs.clear()
        assert len(vfs) == 0


class TestFileTools:
    """Test read_file, write_file and edit_file."""

    async def test_read(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "read_file", file_path="/readme.md")

        assert result.success
        assert result.content == "hello"
        assert result.metadata["size"] == 5

    async def test_read_missing(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "read_file", file_path="/missing.md")

        assert not result.success
        assert result.text == "Error: File not found: /missing.md"

    async def test_relative_path_rejected(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "write_file", file_path="docs/x.md", content="x")

        assert not result.success
        assert result.error == "Path must be absolute (start with /)"
        assert "docs/x.md" not in executor.vfs

    async def test_write_overwrites(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "write_file", file_path="/readme.md", content="bye")

        assert result.content == "File written: /readme.md (3 bytes)"
        assert executor.vfs.get("/readme.md").content == "bye"

    async def test_missing_argument(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "write_file", file_path="/a.md")

        assert not result.success
        assert result.error.startswith("Invalid input for write_file")

    async def test_edit_unique(self, executor: SandboxToolExecutor) -> None:
        result = await run(
            executor, "edit_file", file_path="/docs/prd.md", old_string="Non-goals", new_string="Scope"
        )

        assert result.success
        assert executor.vfs.get("/docs/prd.md").content == "# PRD\nGoals\nScope\n"

    async def test_edit_ambiguous(self, executor: SandboxToolExecutor) -> None:
        result = await run(
            executor, "edit_file", file_path="/docs/prd.md", old_string="oals", new_string="x"
        )

        assert not result.success
        assert result.error == "String appears 2 times in file. Please provide a unique string."
        assert executor.vfs.get("/docs/prd.md").content == "# PRD\nGoals\nNon-goals\n"

    async def test_edit_not_found(self, executor: SandboxToolExecutor) -> None:
        result = await run(
            executor, "edit_file", file_path="/docs/prd.md", old_string="Budget", new_string="x"
        )
        assert result.error == 'String not found in file: "Budget"'

    async def test_edit_missing_file(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "edit_file", file_path="/nope.md", old_string="a", new_string="b")
        assert result.error == "File not found: /nope.md"


class TestSearchTools:
    """Test list_files, glob_pattern and grep_search."""

    async def test_list_direct_children(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "list_files", path="/docs")

        assert result.metadata["files"] == ["/docs/notes.txt", "/docs/prd.md"]
        assert "/docs/prd.md (" in result.content

    async def test_list_empty(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "list_files", path="/empty")

        assert result.success
        assert result.content == "Directory is empty or does not exist: /empty"

    async def test_glob_single_segment(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "glob_pattern", pattern="/docs/*.md")
        assert result.metadata["matches"] == ["/docs/prd.md"]

    async def test_glob_recursive(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "glob_pattern", pattern="**/*.md")
        assert result.metadata["matches"] == ["/docs/arch/overview.md", "/docs/prd.md", "/readme.md"]

    async def test_glob_relative_to_path(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "glob_pattern", pattern="*.txt", path="/docs")
        assert result.content == "/docs/notes.txt"

    async def test_glob_no_match(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "glob_pattern", pattern="*.yaml")

        assert result.success
        assert result.content == "No files matching pattern: *.yaml"

    async def test_grep(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "grep_search", pattern="[Gg]oals")

        assert result.content.splitlines() == [
            "/docs/notes.txt:1: remember the goals",
            "/docs/prd.md:2: Goals",
            "/docs/prd.md:3: Non-goals",
        ]
        assert result.metadata["files"] == ["/docs/notes.txt", "/docs/prd.md"]

    async def test_grep_with_glob_and_path(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "grep_search", pattern="^#", path="/docs", glob="**/*.md")
        assert result.metadata["files"] == ["/docs/arch/overview.md", "/docs/prd.md"]

    async def test_grep_invalid_regex(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "grep_search", pattern="(")

        assert not result.success
        assert result.error.startswith("Invalid regex pattern")

    async def test_grep_no_match(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "grep_search", pattern="kubernetes")
        assert result.content == "No matches found for pattern: kubernetes"


class TestBashCommand:
    """Test the restricted command tool."""

    async def test_mkdir_creates_marker(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "bash_command", command="mkdir -p /out")

        assert result.content == "Directory created: /out"
        assert "/out/.directory" in executor.vfs
        assert "/out/.directory" not in [d.path for d in executor.vfs.get_documents()]

    async def test_ls_and_echo(self, executor: SandboxToolExecutor) -> None:
        listing = await run(executor, "bash_command", command="ls /docs")
        echoed = await run(executor, "bash_command", command="echo 'hi there'")

        assert listing.metadata["count"] == 2
        assert echoed.content == "hi there"

    async def test_disallowed_command(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "bash_command", command="rm -rf /docs")

        assert not result.success
        assert result.error == "Command not allowed: rm. Supported commands: mkdir, ls, pwd, echo"
        assert "/docs/prd.md" in executor.vfs

    async def test_custom_allow_list(self) -> None:
        executor = SandboxToolExecutor(allowed_commands=["echo"])

        denied = await run(executor, "bash_command", command="pwd")

        assert denied.error == "Command not allowed: pwd. Supported commands: echo"
        assert "echo" in executor.definitions()[-1].description

    async def test_unknown_tool(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "format_disk")
        assert result.text == "Error: Unknown tool: format_disk"


class TestDefinitions:
    def test_sandbox_definitions(self) -> None:
        names = [d.name for d in SandboxToolExecutor().definitions()]
        assert names == [
            "read_file",
            "write_file",
            "edit_file",
            "list_files",
            "glob_pattern",
            "grep_search",
            "bash_command",
        ]

    def test_reserved_tools(self) -> None:
        invoke = invoke_agent_definition(["analyst", "architect"])

        assert ASK_USER_TOOL.input_schema["required"] == ["question"]
        assert invoke.input_schema["properties"]["agent_id"]["enum"] == ["analyst", "architect"]

    @pytest.mark.parametrize(
        ("pattern", "path", "expected"),
        [
            ("/docs/*.md", "/docs/a.md", True),
            ("/docs/*.md", "/docs/sub/a.md", False),
            ("/docs/**/*.md", "/docs/a.md", True),
            ("/docs/**/*.md", "/docs/x/y/a.md", True),
            ("/a?.md", "/ab.md", True),
            ("/a?.md", "/a/.md", False),
            ("/docs/[ab].md", "/docs/b.md", True),
            ("/**", "/docs/arch/overview.md", True),
        ],
    )
    def test_glob_match(self, pattern: str, path: str, expected: bool) -> None:
        assert glob_match(pattern, path) is expected


class TestMalformedArguments:
    """Arguments of the wrong type come back as failed results, never exceptions."""

    @pytest.mark.parametrize(
        ("name", "args"),
        [
            ("glob_pattern", {"pattern": 123}),
            ("grep_search", {"pattern": 3}),
            ("grep_search", {"pattern": "goals", "glob": 7}),
            ("bash_command", {"command": 5}),
            ("write_file", {"file_path": "/a.md", "content": 5}),
            ("write_file", {"file_path": "/a.md"}),
            ("edit_file", {"file_path": "/readme.md", "old_string": 1, "new_string": "x"}),
            ("edit_file", {"file_path": "/readme.md", "old_string": "hello", "new_string": None}),
        ],
    )
    async def test_invalid_input(self, executor: SandboxToolExecutor, name: str, args: dict[str, Any]) -> None:
        result = await executor.execute(tool_call("t", name, **args))

        assert not result.success
        assert result.text.startswith(f"Error: Invalid input for {name}:")

    async def test_non_string_path(self, executor: SandboxToolExecutor) -> None:
        result = await run(executor, "read_file", file_path=1)

        assert not result.success
        assert result.error == "Path must be absolute (start with /)"

    async def test_bad_edit_leaves_file(self, executor: SandboxToolExecutor) -> None:
        await run(executor, "edit_file", file_path="/readme.md", old_string="hello", new_string=None)

        assert executor.vfs.get("/readme.md").content == "hello"
