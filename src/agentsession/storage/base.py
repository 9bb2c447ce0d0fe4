"""Storage adapter contract for documents and session snapshots.

Session snapshots cross this boundary as plain mappings (the output of
``SessionState.to_dict()``), so adapters never import executor types.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Protocol, runtime_checkable

from agentsession.tools.sandbox import Document

DEFAULT_LIST_LIMIT = 100

_MIME_TYPES = {
    ".md": "text/markdown",
    ".txt": "text/plain",
    ".json": "application/json",
    ".yaml": "application/x-yaml",
    ".yml": "application/x-yaml",
    ".html": "text/html",
    ".pdf": "application/pdf",
    ".csv": "text/csv",
}


class StorageError(Exception):
    """A storage backend operation failed."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class StorageNotFoundError(StorageError):
    def __init__(self, path: str, message: str | None = None) -> None:
        super().__init__(message or f"Document not found in storage: {path}", code="not_found")
        self.path = path


class SessionNotFoundError(StorageNotFoundError):
    """No snapshot is stored for a session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_state_path(session_id), f"Session not found: {session_id}")
        self.session_id = session_id


class StorageNotConfiguredError(StorageError):
    """A persistence operation was requested but no adapter is configured."""

    def __init__(self, message: str = "Storage not configured") -> None:
        super().__init__(message, code="not_configured")


def infer_mime_type(path: str) -> str:
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in _MIME_TYPES:
        return _MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


def session_state_path(session_id: str) -> str:
    return f"/sessions/{session_id}/state"


@dataclass
class StorageMetadata:
    """Provenance attached to every stored document."""

    session_id: str
    agent_id: str
    command: str
    timestamp: float
    mime_type: str | None = None
    size: int | None = None
    tags: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "agent_id": self.agent_id,
            "command": self.command,
            "timestamp": self.timestamp,
            "mime_type": self.mime_type,
            "size": self.size,
            "tags": dict(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageMetadata:
        return cls(
            session_id=data.get("session_id", ""),
            agent_id=data.get("agent_id", ""),
            command=data.get("command", ""),
            timestamp=data.get("timestamp", 0.0),
            mime_type=data.get("mime_type"),
            size=data.get("size"),
            tags=dict(data.get("tags") or {}),
        )


@dataclass
class StorageResult:
    success: bool
    path: str
    url: str | None = None
    metadata: StorageMetadata | None = None
    error: str | None = None


@dataclass
class StorageQueryOptions:
    """Filters for listing documents. Dates are epoch seconds."""

    session_id: str | None = None
    agent_id: str | None = None
    start_date: float | None = None
    end_date: float | None = None
    tags: dict[str, str] | None = None
    limit: int = DEFAULT_LIST_LIMIT
    offset: int = 0

    def matches(self, metadata: StorageMetadata) -> bool:
        if self.session_id and metadata.session_id != self.session_id:
            return False
        if self.agent_id and metadata.agent_id != self.agent_id:
            return False
        if self.start_date is not None and metadata.timestamp < self.start_date:
            return False
        if self.end_date is not None and metadata.timestamp > self.end_date:
            return False
        if self.tags:
            return all(metadata.tags.get(k) == v for k, v in self.tags.items())
        return True


@dataclass
class StoredDocumentInfo:
    path: str
    metadata: StorageMetadata
    url: str | None = None


@dataclass
class StorageListResult:
    documents: list[StoredDocumentInfo]
    total: int
    has_more: bool


@dataclass
class SessionListOptions:
    """Filters for listing saved session snapshots."""

    agent_id: str | None = None
    status: str | None = None
    start_date: float | None = None
    end_date: float | None = None
    limit: int = DEFAULT_LIST_LIMIT
    offset: int = 0

    def matches(self, state: dict[str, Any]) -> bool:
        if self.agent_id and state.get("agent_id") != self.agent_id:
            return False
        if self.status and state.get("status") != self.status:
            return False
        created = state.get("created_at") or 0.0
        if self.start_date is not None and created < self.start_date:
            return False
        if self.end_date is not None and created > self.end_date:
            return False
        return True


@dataclass
class SessionSummary:
    """Listing row for one saved session."""

    session_id: str
    agent_id: str
    command: str
    status: str
    created_at: float
    completed_at: float | None
    document_count: int
    total_cost: float

    @classmethod
    def from_state(cls, state: dict[str, Any]) -> SessionSummary:
        files = state.get("vfs_files") or {}
        costs = state.get("costs") or {}
        return cls(
            session_id=state["id"],
            agent_id=state.get("agent_id", ""),
            command=state.get("command", ""),
            status=state.get("status", ""),
            created_at=state.get("created_at") or 0.0,
            completed_at=state.get("completed_at"),
            document_count=sum(1 for p in files if not p.endswith("/.directory")),
            total_cost=costs.get("total_cost", 0.0),
        )


@dataclass
class SessionListResult:
    sessions: list[SessionSummary]
    total: int
    has_more: bool


def paginate(items: list[Any], limit: int, offset: int) -> tuple[list[Any], bool]:
    limit = limit or DEFAULT_LIST_LIMIT
    return items[offset : offset + limit], offset + limit < len(items)


@runtime_checkable
class StorageAdapter(Protocol):
    """Backend for documents and session snapshots."""

    async def initialize(self) -> None: ...

    async def close(self) -> None: ...

    async def save(self, document: Document, metadata: StorageMetadata) -> StorageResult: ...

    async def save_batch(
        self, documents: list[Document], metadata: StorageMetadata
    ) -> list[StorageResult]: ...

    async def load(self, path: str) -> Document:
        """Raises StorageNotFoundError if absent."""
        ...

    async def exists(self, path: str) -> bool: ...

    async def delete(self, path: str) -> bool: ...

    async def list(self, options: StorageQueryOptions | None = None) -> StorageListResult: ...

    async def get_metadata(self, path: str) -> StorageMetadata:
        """Raises StorageNotFoundError if absent."""
        ...

    async def get_url(self, path: str, expires_in: float | None = None) -> str | None: ...

    async def save_session_state(self, state: dict[str, Any]) -> StorageResult: ...

    async def load_session_state(self, session_id: str) -> dict[str, Any]:
        """Raises SessionNotFoundError if absent."""
        ...

    async def list_sessions(self, options: SessionListOptions | None = None) -> SessionListResult: ...

    async def delete_session(self, session_id: str) -> bool: ...
