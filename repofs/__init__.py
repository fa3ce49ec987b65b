"""repofs - one tree over a local configuration repository and a remote server."""

from .api import RepoFSClient
from .backends import BackendAdapter, LocalBackend, RemoteBackend
from .exceptions import (
    BackendAuthenticationError,
    BackendError,
    BackendInvalidResponseError,
    BackendNetworkError,
    BackendPermissionError,
    BackendRateLimitError,
    ConfigError,
    MalformedEntryError,
    NotFoundError,
    RepoFSError,
)
from .fs import (
    ArtifactCollectionEntry,
    ArtifactEntry,
    DirectoryEntry,
    Entry,
    EntryKind,
    FileEntry,
    repository_root,
    resolve,
)
from .sync import ChangeKind, ChangeRecord, DiffEngine, DiffResult, SyncEngine

__all__ = [
    "RepoFSClient",
    "BackendAdapter",
    "LocalBackend",
    "RemoteBackend",
    "ArtifactCollectionEntry",
    "ArtifactEntry",
    "DirectoryEntry",
    "Entry",
    "EntryKind",
    "FileEntry",
    "repository_root",
    "resolve",
    "ChangeKind",
    "ChangeRecord",
    "DiffEngine",
    "DiffResult",
    "SyncEngine",
    "BackendAuthenticationError",
    "BackendError",
    "BackendInvalidResponseError",
    "BackendNetworkError",
    "BackendPermissionError",
    "BackendRateLimitError",
    "ConfigError",
    "MalformedEntryError",
    "NotFoundError",
    "RepoFSError",
]
