"""Virtual repository tree shared by the local and remote backends."""

from .entries import (
    ChildFactory,
    DirectoryEntry,
    Entry,
    EntryKind,
    FileEntry,
    plain_child,
    resolve,
)
from .repository import (
    ArtifactCollectionEntry,
    ArtifactEntry,
    artifact_child,
    category_factory,
    repository_root,
)

__all__ = [
    "ArtifactCollectionEntry",
    "ArtifactEntry",
    "ChildFactory",
    "DirectoryEntry",
    "Entry",
    "EntryKind",
    "FileEntry",
    "artifact_child",
    "category_factory",
    "plain_child",
    "repository_root",
    "resolve",
]
