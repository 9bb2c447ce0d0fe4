"""Document and session-snapshot storage."""

from agentsession.storage.base import (
    SessionListOptions,
    SessionListResult,
    SessionNotFoundError,
    SessionSummary,
    StorageAdapter,
    StorageError,
    StorageListResult,
    StorageMetadata,
    StorageNotConfiguredError,
    StorageNotFoundError,
    StorageQueryOptions,
    StorageResult,
    StoredDocumentInfo,
    infer_mime_type,
)
from agentsession.storage.filesystem import FileSystemStorageAdapter
from agentsession.storage.memory import InMemoryStorageAdapter

__all__ = [
    "FileSystemStorageAdapter",
    "InMemoryStorageAdapter",
    "SessionListOptions",
    "SessionListResult",
    "SessionNotFoundError",
    "SessionSummary",
    "StorageAdapter",
    "StorageError",
    "StorageListResult",
    "StorageMetadata",
    "StorageNotConfiguredError",
    "StorageNotFoundError",
    "StorageQueryOptions",
    "StorageResult",
    "StoredDocumentInfo",
    "infer_mime_type",
]
