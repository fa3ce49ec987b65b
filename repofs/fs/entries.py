"""Entry classes for the virtual repository tree.

Architecture:
    - Entry: Base class for every node; knows its name and parent
    - FileEntry: Leaf node with readable/writable content
    - DirectoryEntry: Container node whose children are listed lazily
      from the backend and typed by an injected child factory

Entries are cheap views over backend state. A child keeps a reference to
its parent so its path can be rebuilt; parents never store their
children, so the tree has no reference cycles and every ``children()``
call sees current backend state.
"""

import logging
from abc import ABC
from collections.abc import Iterator
from enum import Enum
from typing import Callable, Optional

from ..backends.base import BackendAdapter
from ..exceptions import NotFoundError
from ..utils import join_path, split_path, validate_name

logger = logging.getLogger(__name__)


class EntryKind(str, Enum):
    """Structural kind of an entry."""

    CONTAINER = "container"
    LEAF = "leaf"


class Entry(ABC):
    """Base class for all tree entries.

    Attributes:
        parent: Owning directory (None for the root)
        backend: Adapter this entry reads from (shared with the whole tree)
    """

    kind: EntryKind

    def __init__(
        self,
        name: str,
        parent: Optional["DirectoryEntry"] = None,
        backend: Optional[BackendAdapter] = None,
    ):
        """Initialize an entry.

        Args:
            name: Name of this entry among its siblings. For the root it is
                only a display name.
            parent: Parent directory (None for root)
            backend: Backend adapter; required for the root, inherited
                from the parent otherwise
        """
        if parent is None:
            if backend is None:
                raise ValueError("A root entry needs a backend")
        else:
            validate_name(name)
            backend = parent.backend
        self._name = name
        self.parent = parent
        self.backend: BackendAdapter = backend

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> str:
        """Root-relative path, rebuilt from the parent chain.

        Returns:
            Path like ``cookbook_artifacts/apache-1a2b/recipes`` (``""`` for root)
        """
        parts = []
        entry: Entry = self
        while entry.parent is not None:
            parts.append(entry.name)
            entry = entry.parent
        return "/".join(reversed(parts))

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_container(self) -> bool:
        return self.kind == EntryKind.CONTAINER

    @property
    def is_leaf(self) -> bool:
        return self.kind == EntryKind.LEAF

    def exists(self) -> bool:
        """Ask the backend whether this entry exists.

        Raises:
            BackendError: On I/O or network failure (never for absence)
        """
        return self.backend.exists(self.path)

    def delete(self) -> None:
        """Delete this entry (recursively for containers)."""
        self.backend.delete(self.path)

    def display_path(self) -> str:
        return "/" + self.path

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', path='{self.path}')"


class FileEntry(Entry):
    """A leaf entry with byte content."""

    kind = EntryKind.LEAF

    def read(self) -> bytes:
        """Read this file's content.

        Raises:
            NotFoundError: If the file does not exist
            BackendError: On I/O or network failure
        """
        return self.backend.read(self.path)

    def write(self, data: bytes) -> None:
        self.backend.write(self.path, data)

    def checksum(self) -> Optional[str]:
        """Backend-supplied content digest, None when the backend has none."""
        return self.backend.checksum(self.path)


ChildFactory = Callable[[str, "DirectoryEntry"], Entry]
"""Strategy turning a raw child name into a typed entry parented to a directory"""


class DirectoryEntry(Entry):
    """A container entry.

    Listing the children (I/O, backend specific) and typing each child
    (pure, category specific) are kept apart: ``child_names()`` does the
    former, ``make_child_entry()`` delegates the latter to the
    ``child_factory`` strategy given at construction.
    """

    kind = EntryKind.CONTAINER

    def __init__(
        self,
        name: str,
        parent: Optional["DirectoryEntry"] = None,
        backend: Optional[BackendAdapter] = None,
        child_factory: Optional[ChildFactory] = None,
    ):
        """Initialize a directory entry.

        Args:
            name: Name of this directory
            parent: Parent directory (None for root)
            backend: Backend adapter (root only)
            child_factory: Strategy used to type children
                (defaults to :func:`plain_child`)
        """
        super().__init__(name, parent, backend)
        self.child_factory: ChildFactory = child_factory or plain_child

    def child_names(self) -> list[str]:
        """List raw child names from the backend, sorted by name.

        Raises:
            NotFoundError: If this directory does not exist
            BackendError: On I/O or network failure
        """
        return sorted(self.backend.list(self.path))

    def make_child_entry(self, name: str) -> Entry:
        """Build the typed entry for child ``name``."""
        return self.child_factory(name, self)

    def children(self) -> list[Entry]:
        """List children as typed entries, sorted by name.

        Returns an empty list for an existing empty directory.

        Raises:
            NotFoundError: If this directory does not exist
            MalformedEntryError: If the child factory rejects a name
        """
        return [self.make_child_entry(name) for name in self.child_names()]

    def child(self, name: str) -> Entry:
        """Get a child entry by name without listing the directory.

        The returned entry may not exist; check with ``exists()``.
        """
        return self.make_child_entry(name)

    def walk(self) -> Iterator[Entry]:
        """Yield every descendant depth-first, in name order."""
        for entry in self.children():
            yield entry
            if isinstance(entry, DirectoryEntry):
                yield from entry.walk()


def plain_child(name: str, parent: DirectoryEntry) -> Entry:
    """Default child factory: a directory or a file, as the backend reports."""
    if parent.backend.is_container(join_path(parent.path, name)):
        return DirectoryEntry(name, parent)
    return FileEntry(name, parent)


def resolve(root: DirectoryEntry, path: str) -> Entry:
    """Follow ``path`` from ``root`` through each directory's child factory.

    Args:
        root: Directory to start from
        path: Path relative to ``root``

    Returns:
        Entry at ``path`` (which may not exist on the backend)

    Raises:
        NotFoundError: If an intermediate segment is not a directory
        MalformedEntryError: If a segment is rejected by a child factory
    """
    entry: Entry = root
    for segment in split_path(path):
        if not isinstance(entry, DirectoryEntry):
            raise NotFoundError(
                f"Not a directory: {entry.display_path()}", path=entry.path
            )
        entry = entry.child(segment)
    logger.debug("Resolved %s to %r", path, entry)
    return entry
