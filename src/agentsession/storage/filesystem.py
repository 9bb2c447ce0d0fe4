"""Directory-backed storage adapter.

Layout under ``base_path``:
  documents/<path>             document content
  metadata/<path>.yaml         StorageMetadata sidecar
  sessions/<session-id>.yaml   session snapshots

Writes go through a temp file and rename, serialized across processes with a
FileLock on ``base_path/.lock``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from filelock import FileLock

from agentsession.logging import get_logger
from agentsession.storage.base import (
    SessionListOptions,
    SessionListResult,
    SessionNotFoundError,
    SessionSummary,
    StorageError,
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

log = get_logger("storage.filesystem")

LOCK_TIMEOUT = 10


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(temp_path, path)
    except OSError:
        if temp_path.exists():
            temp_path.unlink()
        raise


class FileSystemStorageAdapter:
    """StorageAdapter that keeps documents and snapshots on local disk."""

    def __init__(self, base_path: str | Path) -> None:
        self._base = Path(base_path).expanduser()
        self._lock = FileLock(str(self._base / ".lock"), timeout=LOCK_TIMEOUT)

    @property
    def base_path(self) -> Path:
        return self._base

    def _relative(self, path: str) -> Path:
        parts = [p for p in path.split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise StorageError(f"Invalid document path: {path}", code="invalid_path")
        return Path(*parts)

    def _document_file(self, path: str) -> Path:
        return self._base / "documents" / self._relative(path)

    def _metadata_file(self, path: str) -> Path:
        rel = self._relative(path)
        return self._base / "metadata" / rel.with_name(rel.name + ".yaml")

    def _session_file(self, session_id: str) -> Path:
        if "/" in session_id or session_id in ("", ".", ".."):
            raise StorageError(f"Invalid session id: {session_id}", code="invalid_path")
        return self._base / "sessions" / f"{session_id}.yaml"

    async def initialize(self) -> None:
        for sub in ("documents", "metadata", "sessions"):
            (self._base / sub).mkdir(parents=True, exist_ok=True)
        log.debug("Filesystem storage ready at %s", self._base)

    async def close(self) -> None:
        pass

    async def save(self, document: Document, metadata: StorageMetadata) -> StorageResult:
        stored = StorageMetadata.from_dict(metadata.to_dict())
        stored.mime_type = infer_mime_type(document.path)
        stored.size = len(document.content.encode("utf-8"))
        try:
            with self._lock:
                _atomic_write(self._document_file(document.path), document.content)
                _atomic_write(
                    self._metadata_file(document.path),
                    yaml.safe_dump(stored.to_dict(), sort_keys=False),
                )
        except (OSError, StorageError) as e:
            log.warning("Failed to save %s: %s", document.path, e)
            return StorageResult(success=False, path=document.path, error=str(e))
        return StorageResult(
            success=True,
            path=document.path,
            url=await self.get_url(document.path),
            metadata=stored,
        )

    async def save_batch(
        self, documents: list[Document], metadata: StorageMetadata
    ) -> list[StorageResult]:
        return [await self.save(doc, metadata) for doc in documents]

    async def load(self, path: str) -> Document:
        target = self._document_file(path)
        if not target.is_file():
            raise StorageNotFoundError(path)
        try:
            return Document(path=path, content=target.read_text(encoding="utf-8"))
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", code="read_failed") from e

    async def exists(self, path: str) -> bool:
        return self._document_file(path).is_file()

    async def delete(self, path: str) -> bool:
        target = self._document_file(path)
        if not target.is_file():
            return False
        with self._lock:
            target.unlink()
            meta = self._metadata_file(path)
            if meta.exists():
                meta.unlink()
        return True

    def _read_metadata(self, path: str) -> StorageMetadata:
        meta = self._metadata_file(path)
        if not meta.is_file():
            raise StorageNotFoundError(path)
        try:
            data = yaml.safe_load(meta.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Corrupt metadata for {path}: {e}", code="corrupt") from e
        return StorageMetadata.from_dict(data)

    async def list(self, options: StorageQueryOptions | None = None) -> StorageListResult:
        options = options or StorageQueryOptions()
        root = self._base / "documents"
        matching: list[StoredDocumentInfo] = []
        if root.is_dir():
            for file in sorted(p for p in root.rglob("*") if p.is_file()):
                if file.name.endswith(".tmp"):
                    continue
                path = "/" + file.relative_to(root).as_posix()
                try:
                    metadata = self._read_metadata(path)
                except StorageError as e:
                    log.warning("Skipping %s in listing: %s", path, e)
                    continue
                if options.matches(metadata):
                    matching.append(
                        StoredDocumentInfo(path=path, metadata=metadata, url=file.as_uri())
                    )
        page, has_more = paginate(matching, options.limit, options.offset)
        return StorageListResult(documents=page, total=len(matching), has_more=has_more)

    async def get_metadata(self, path: str) -> StorageMetadata:
        return self._read_metadata(path)

    async def get_url(self, path: str, expires_in: float | None = None) -> str | None:
        target = self._document_file(path)
        if not target.is_file():
            return None
        return target.resolve().as_uri()

    async def save_session_state(self, state: dict[str, Any]) -> StorageResult:
        session_id = state["id"]
        target = self._session_file(session_id)
        text = yaml.safe_dump(state, sort_keys=False, allow_unicode=True)
        try:
            with self._lock:
                _atomic_write(target, text)
        except OSError as e:
            log.warning("Failed to save session %s: %s", session_id, e)
            return StorageResult(success=False, path=session_state_path(session_id), error=str(e))
        log.debug("Saved session %s to %s", session_id, target)
        return StorageResult(
            success=True,
            path=session_state_path(session_id),
            url=target.resolve().as_uri(),
            metadata=StorageMetadata(
                session_id=session_id,
                agent_id=state.get("agent_id", ""),
                command=state.get("command", ""),
                timestamp=state.get("created_at") or 0.0,
                mime_type="application/x-yaml",
                size=len(text.encode("utf-8")),
            ),
        )

    def _read_state(self, file: Path) -> dict[str, Any]:
        try:
            data = yaml.safe_load(file.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Corrupt session file {file}: {e}", code="corrupt") from e
        if not isinstance(data, dict) or "id" not in data:
            raise StorageError(f"Corrupt session file {file}", code="corrupt")
        return data

    async def load_session_state(self, session_id: str) -> dict[str, Any]:
        target = self._session_file(session_id)
        if not target.is_file():
            raise SessionNotFoundError(session_id)
        return self._read_state(target)

    async def list_sessions(self, options: SessionListOptions | None = None) -> SessionListResult:
        options = options or SessionListOptions()
        root = self._base / "sessions"
        matching: list[SessionSummary] = []
        if root.is_dir():
            for file in sorted(root.glob("*.yaml")):
                try:
                    state = self._read_state(file)
                except StorageError as e:
                    log.warning("Skipping session file: %s", e)
                    continue
                if options.matches(state):
                    matching.append(SessionSummary.from_state(state))
        matching.sort(key=lambda s: s.created_at)
        page, has_more = paginate(matching, options.limit, options.offset)
        return SessionListResult(sessions=page, total=len(matching), has_more=has_more)

    async def delete_session(self, session_id: str) -> bool:
        target = self._session_file(session_id)
        if not target.is_file():
            return False
        with self._lock:
            target.unlink()
        return True
