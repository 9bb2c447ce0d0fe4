"""In-process storage adapter.

Everything is deep-copied on the way in and out so callers never share
mutable state with the store. Intended for tests and single-process use.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from typing import Any

from agentsession.logging import get_logger
from agentsession.storage.base import (
    SessionListOptions,
    SessionListResult,
    SessionNotFoundError,
    SessionSummary,
    StorageListResult,
    StorageMetadata,
    StorageNotFoundError,
    StorageQueryOptions,
    StorageResult,
    StoredDocumentInfo,
    infer_mime_type,
    paginate,
    session_state_path,
)
from agentsession.tools.sandbox import Document

log = get_logger("storage.memory")


@dataclass
class _Entry:
    document: Document
    metadata: StorageMetadata


class InMemoryStorageAdapter:
    """Dict-backed StorageAdapter. Has no URLs."""

    def __init__(self) -> None:
        self._documents: dict[str, _Entry] = {}
        self._sessions: dict[str, dict[str, Any]] = {}

    async def initialize(self) -> None:
        log.debug("In-memory storage ready")

    async def close(self) -> None:
        self._documents.clear()
        self._sessions.clear()

    async def save(self, document: Document, metadata: StorageMetadata) -> StorageResult:
        stored = copy.deepcopy(metadata)
        stored.mime_type = infer_mime_type(document.path)
        stored.size = len(document.content.encode("utf-8"))
        self._documents[document.path] = _Entry(Document(document.path, document.content), stored)
        return StorageResult(success=True, path=document.path, metadata=copy.deepcopy(stored))

    async def save_batch(
        self, documents: list[Document], metadata: StorageMetadata
    ) -> list[StorageResult]:
        return [await self.save(doc, metadata) for doc in documents]

    async def load(self, path: str) -> Document:
        entry = self._documents.get(path)
        if entry is None:
            raise StorageNotFoundError(path)
        return Document(entry.document.path, entry.document.content)

    async def exists(self, path: str) -> bool:
        return path in self._documents

    async def delete(self, path: str) -> bool:
        return self._documents.pop(path, None) is not None

    async def list(self, options: StorageQueryOptions | None = None) -> StorageListResult:
        options = options or StorageQueryOptions()
        matching = [
            StoredDocumentInfo(path=path, metadata=copy.deepcopy(entry.metadata))
            for path, entry in self._documents.items()
            if options.matches(entry.metadata)
        ]
        page, has_more = paginate(matching, options.limit, options.offset)
        return StorageListResult(documents=page, total=len(matching), has_more=has_more)

    async def get_metadata(self, path: str) -> StorageMetadata:
        entry = self._documents.get(path)
        if entry is None:
            raise StorageNotFoundError(path)
        return copy.deepcopy(entry.metadata)

    async def get_url(self, path: str, expires_in: float | None = None) -> str | None:
        return None

    async def save_session_state(self, state: dict[str, Any]) -> StorageResult:
        session_id = state["id"]
        self._sessions[session_id] = copy.deepcopy(state)
        return StorageResult(
            success=True,
            path=session_state_path(session_id),
            metadata=StorageMetadata(
                session_id=session_id,
                agent_id=state.get("agent_id", ""),
                command=state.get("command", ""),
                timestamp=state.get("created_at") or 0.0,
                mime_type="application/json",
                size=len(json.dumps(state, default=str)),
            ),
        )

    async def load_session_state(self, session_id: str) -> dict[str, Any]:
        state = self._sessions.get(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return copy.deepcopy(state)

    async def list_sessions(self, options: SessionListOptions | None = None) -> SessionListResult:
        options = options or SessionListOptions()
        matching = [
            SessionSummary.from_state(state)
            for state in self._sessions.values()
            if options.matches(state)
        ]
        page, has_more = paginate(matching, options.limit, options.offset)
        return SessionListResult(sessions=page, total=len(matching), has_more=has_more)

    async def delete_session(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def get_all(self) -> list[Document]:
        return [Document(e.document.path, e.document.content) for e in self._documents.values()]

    @property
    def size(self) -> int:
        return len(self._documents)

    def clear(self) -> None:
        self._documents.clear()
