"""Diff and sync engines for repofs trees."""

from .comparator import (
    ChangeKind,
    ChangeRecord,
    DiffEngine,
    DiffResult,
    PathError,
)
from .engine import SyncEngine, SyncOutcome, SyncResult, SyncStatus
from .operations import SyncOperations

__all__ = [
    "ChangeKind",
    "ChangeRecord",
    "DiffEngine",
    "DiffResult",
    "PathError",
    "SyncEngine",
    "SyncOperations",
    "SyncOutcome",
    "SyncResult",
    "SyncStatus",
]
