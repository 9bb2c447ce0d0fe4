"""Virtual document space and the tools that operate on it.

Every session owns one VirtualFileSystem: an in-memory mapping of absolute
paths to text. Tool failures are returned as unsuccessful ToolResults so the
model can see them and adapt; nothing here raises into the turn loop.
"""

from __future__ import annotations

import fnmatch
import re
import shlex
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from agentsession.core.llm.provider import ToolCall, ToolDefinition
from agentsession.logging import get_logger
from agentsession.tools.definitions import (
    BASH_COMMAND,
    EDIT_FILE,
    GLOB_PATTERN,
    GREP_SEARCH,
    LIST_FILES,
    READ_FILE,
    WRITE_FILE,
    sandbox_tool_definitions,
)

log = get_logger("tools")

DIRECTORY_MARKER = ".directory"
DEFAULT_ALLOWED_COMMANDS = ("mkdir", "ls", "pwd", "echo")
MAX_GREP_MATCHES = 200


class InvalidPathError(ValueError):
    """A tool was given a relative path."""


@dataclass
class VirtualFile:
    content: str
    created_at: float
    modified_at: float

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))


@dataclass(frozen=True)
class Document:
    """A finished document: a path and its full text."""

    path: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        return cls(path=data["path"], content=data.get("content", ""))


@dataclass
class ToolResult:
    """Outcome of one tool execution, fed back to the model."""

    success: bool
    content: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """What the model sees in the tool_result block."""
        if self.success:
            return self.content or ""
        return f"Error: {self.error or 'Unknown error'}"


def _is_marker(path: str) -> bool:
    return path.endswith("/" + DIRECTORY_MARKER)


def glob_match(pattern: str, path: str) -> bool:
    """Match an absolute path against a glob, one segment at a time.

    Segments match with ``fnmatch`` so ``*`` and ``?`` never cross a ``/``;
    a ``**`` segment matches zero or more whole segments.
    """
    return _match_segments(pattern.strip("/").split("/"), path.strip("/").split("/"))


def _match_segments(pattern: list[str], parts: list[str]) -> bool:
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(rest, parts[i:]) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_segments(rest, parts[1:])


def _string_arg(args: dict[str, Any], key: str) -> str:
    value = args[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value


def _join(base: str, pattern: str) -> str:
    if pattern.startswith("/"):
        return pattern
    if pattern.startswith("./"):
        pattern = pattern[2:]
    return base.rstrip("/") + "/" + pattern


class VirtualFileSystem:
    """Session-scoped path to content namespace."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self._files: dict[str, VirtualFile] = {}
        if files:
            self.initialize_files(files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def get(self, path: str) -> VirtualFile | None:
        return self._files.get(path)

    def write(self, path: str, content: str) -> VirtualFile:
        now = time.time()
        existing = self._files.get(path)
        entry = VirtualFile(
            content=content,
            created_at=existing.created_at if existing else now,
            modified_at=now,
        )
        self._files[path] = entry
        return entry

    def delete(self, path: str) -> bool:
        return self._files.pop(path, None) is not None

    def initialize_files(self, files: dict[str, str]) -> None:
        """Seed content without touching existing entries for other paths."""
        for path, content in files.items():
            self.write(path, content)

    def clear(self) -> None:
        self._files.clear()

    @property
    def size(self) -> int:
        """Total content size in bytes."""
        return sum(f.size for f in self._files.values())

    @property
    def file_count(self) -> int:
        return len(self._files)

    def get_documents(self) -> list[Document]:
        """All real files, sorted by path; directory markers are skipped."""
        return [
            Document(path=path, content=self._files[path].content)
            for path in sorted(self._files)
            if not _is_marker(path)
        ]

    def to_dict(self) -> dict[str, str]:
        """Full namespace including markers, for snapshots."""
        return {path: self._files[path].content for path in sorted(self._files)}


class SandboxToolExecutor:
    """Executes file tools against a VirtualFileSystem."""

    def __init__(
        self,
        vfs: VirtualFileSystem | None = None,
        allowed_commands: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_COMMANDS,
    ) -> None:
        self.vfs = vfs if vfs is not None else VirtualFileSystem()
        self._allowed_commands = tuple(allowed_commands)
        self._handlers = {
            READ_FILE: self._read_file,
            WRITE_FILE: self._write_file,
            EDIT_FILE: self._edit_file,
            LIST_FILES: self._list_files,
            GLOB_PATTERN: self._glob_pattern,
            GREP_SEARCH: self._grep_search,
            BASH_COMMAND: self._bash_command,
        }

    def definitions(self) -> list[ToolDefinition]:
        return sandbox_tool_definitions(self._allowed_commands)

    def handles(self, name: str) -> bool:
        return name in self._handlers

    async def execute(self, call: ToolCall) -> ToolResult:
        handler = self._handlers.get(call.name)
        if handler is None:
            return ToolResult(success=False, error=f"Unknown tool: {call.name}")
        try:
            result = handler(call.input)
        except InvalidPathError as e:
            result = ToolResult(success=False, error=str(e))
        except (KeyError, TypeError, ValueError) as e:
            result = ToolResult(success=False, error=f"Invalid input for {call.name}: {e}")
        log.debug("Tool %s success=%s", call.name, result.success)
        return result

    @staticmethod
    def _require_path(path: Any) -> str:
        if not isinstance(path, str) or not path.startswith("/"):
            raise InvalidPathError("Path must be absolute (start with /)")
        return path

    def _read_file(self, args: dict[str, Any]) -> ToolResult:
        path = self._require_path(args["file_path"])
        entry = self.vfs.get(path)
        if entry is None:
            return ToolResult(success=False, error=f"File not found: {path}")
        return ToolResult(
            success=True,
            content=entry.content,
            metadata={"size": entry.size, "modified_at": entry.modified_at},
        )

    def _write_file(self, args: dict[str, Any]) -> ToolResult:
        path = self._require_path(args["file_path"])
        content = _string_arg(args, "content")
        entry = self.vfs.write(path, content)
        return ToolResult(
            success=True,
            content=f"File written: {path} ({entry.size} bytes)",
            metadata={"path": path, "size": entry.size},
        )

    def _edit_file(self, args: dict[str, Any]) -> ToolResult:
        path = self._require_path(args["file_path"])
        old, new = _string_arg(args, "old_string"), _string_arg(args, "new_string")
        entry = self.vfs.get(path)
        if entry is None:
            return ToolResult(success=False, error=f"File not found: {path}")

        occurrences = entry.content.count(old) if old else 0
        if occurrences == 0:
            preview = old[:50] + ("..." if len(old) > 50 else "")
            return ToolResult(success=False, error=f'String not found in file: "{preview}"')
        if occurrences > 1:
            return ToolResult(
                success=False,
                error=f"String appears {occurrences} times in file. Please provide a unique string.",
            )

        old_size = entry.size
        updated = self.vfs.write(path, entry.content.replace(old, new, 1))
        return ToolResult(
            success=True,
            content=f"File edited: {path}",
            metadata={"path": path, "old_size": old_size, "new_size": updated.size},
        )

    def _list_files(self, args: dict[str, Any]) -> ToolResult:
        path = self._require_path(args.get("path", "/"))
        prefix = path if path.endswith("/") else path + "/"
        children = [
            p for p in self.vfs if p.startswith(prefix) and "/" not in p[len(prefix):]
        ]
        if not children:
            return ToolResult(
                success=True,
                content=f"Directory is empty or does not exist: {path}",
                metadata={"count": 0, "files": []},
            )
        lines = [f"{p} ({self.vfs.get(p).size} bytes)" for p in children]  # type: ignore[union-attr]
        return ToolResult(
            success=True,
            content="\n".join(lines),
            metadata={"count": len(children), "files": children},
        )

    def _glob_pattern(self, args: dict[str, Any]) -> ToolResult:
        pattern = _string_arg(args, "pattern")
        base = self._require_path(args.get("path") or "/")
        target = _join(base, pattern)
        matches = [p for p in self.vfs if not _is_marker(p) and glob_match(target, p)]
        metadata = {"count": len(matches), "matches": matches, "pattern": pattern}
        if not matches:
            return ToolResult(
                success=True,
                content=f"No files matching pattern: {pattern}",
                metadata=metadata,
            )
        return ToolResult(success=True, content="\n".join(matches), metadata=metadata)

    def _grep_search(self, args: dict[str, Any]) -> ToolResult:
        pattern = _string_arg(args, "pattern")
        base = self._require_path(args.get("path") or "/")
        try:
            regex = re.compile(pattern)
        except re.error as e:
            return ToolResult(success=False, error=f"Invalid regex pattern: {e}")

        file_filter = _join(base, _string_arg(args, "glob")) if args.get("glob") else None
        prefix = base if base.endswith("/") else base + "/"

        lines: list[str] = []
        files: list[str] = []
        for path in self.vfs:
            if _is_marker(path) or not (path.startswith(prefix) or path == base):
                continue
            if file_filter and not glob_match(file_filter, path):
                continue
            hit = False
            for lineno, line in enumerate(self.vfs.get(path).content.splitlines(), 1):  # type: ignore[union-attr]
                if regex.search(line):
                    hit = True
                    if len(lines) < MAX_GREP_MATCHES:
                        lines.append(f"{path}:{lineno}: {line}")
            if hit:
                files.append(path)

        metadata = {"count": len(lines), "files": files, "pattern": pattern}
        if not lines:
            return ToolResult(
                success=True,
                content=f"No matches found for pattern: {pattern}",
                metadata=metadata,
            )
        return ToolResult(success=True, content="\n".join(lines), metadata=metadata)

    def _bash_command(self, args: dict[str, Any]) -> ToolResult:
        command = _string_arg(args, "command")
        try:
            parts = shlex.split(command)
        except ValueError as e:
            return ToolResult(success=False, error=f"Could not parse command: {e}")
        if not parts:
            return ToolResult(success=False, error="Empty command")

        name, rest = parts[0], parts[1:]
        if name not in self._allowed_commands:
            return ToolResult(
                success=False,
                error=(
                    f"Command not allowed: {name}. "
                    f"Supported commands: {', '.join(self._allowed_commands)}"
                ),
            )

        if name == "mkdir":
            targets = [a for a in rest if not a.startswith("-")]
            if not targets:
                return ToolResult(success=False, error="mkdir: missing directory name")
            for target in targets:
                if not target.startswith("/"):
                    return ToolResult(success=False, error="mkdir: path must be absolute")
                self.vfs.write(target.rstrip("/") + "/" + DIRECTORY_MARKER, "")
            return ToolResult(success=True, content=f"Directory created: {', '.join(targets)}")
        if name == "ls":
            return self._list_files({"path": rest[0] if rest else "/"})
        if name == "pwd":
            return ToolResult(success=True, content="/")
        if name == "echo":
            return ToolResult(success=True, content=" ".join(rest))

        return ToolResult(success=False, error=f"Command not implemented in sandbox: {name}")
