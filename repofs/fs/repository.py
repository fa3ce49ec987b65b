"""Repository layout: category typing and artifact collections.

A repository root lists content categories (``roles``,
``cookbook_artifacts``, ...). Most categories hold plain files and
directories. Artifact categories hold one directory per stored version,
named ``<item>-<identifier>``; they differ from plain directories only in
the child factory they are built with.
"""

from collections.abc import Iterable
from typing import Optional

from ..backends.base import BackendAdapter
from ..exceptions import MalformedEntryError
from ..utils import DEFAULT_ARTIFACT_CATEGORIES, join_path, parse_artifact_name
from .entries import ChildFactory, DirectoryEntry, Entry, plain_child


class ArtifactEntry(DirectoryEntry):
    """One stored version of an artifact, e.g. ``cookbook_artifacts/apache-1a2b``.

    Attributes:
        item_name: Artifact name (``apache``)
        identifier: Version identifier (``1a2b``)
    """

    def __init__(self, name: str, parent: DirectoryEntry):
        parsed = parse_artifact_name(name)
        if parsed is None:
            raise MalformedEntryError(
                f"Artifact name '{name}' is not of the form name-identifier",
                path=join_path(parent.path, name),
            )
        super().__init__(name, parent)
        self.item_name, self.identifier = parsed


def artifact_child(name: str, parent: DirectoryEntry) -> Entry:
    """Child factory for artifact collections.

    Raises:
        MalformedEntryError: If ``name`` lacks a hyphen-separated identifier
    """
    return ArtifactEntry(name, parent)


class ArtifactCollectionEntry(DirectoryEntry):
    """Represents ROOT/<artifact category>, e.g. ROOT/cookbook_artifacts.

    Lists children exactly like :class:`DirectoryEntry`; only the type of
    each child differs.
    """

    def __init__(
        self,
        name: str,
        parent: DirectoryEntry,
        child_factory: Optional[ChildFactory] = None,
    ):
        super().__init__(name, parent, child_factory=child_factory or artifact_child)

    def artifacts(self, item_name: str) -> list[ArtifactEntry]:
        """All stored versions of one artifact, sorted by identifier."""
        found = [
            child
            for child in self.children()
            if isinstance(child, ArtifactEntry) and child.item_name == item_name
        ]
        return sorted(found, key=lambda a: a.identifier)


def category_factory(artifact_categories: Iterable[str]) -> ChildFactory:
    """Build the root's child factory.

    Args:
        artifact_categories: Category names to type as artifact collections

    Returns:
        Factory returning :class:`ArtifactCollectionEntry` for artifact
        categories and the plain entry kind for everything else
    """
    artifact_names = frozenset(artifact_categories)

    def factory(name: str, parent: DirectoryEntry) -> Entry:
        if name in artifact_names:
            return ArtifactCollectionEntry(name, parent)
        return plain_child(name, parent)

    return factory


def repository_root(
    backend: BackendAdapter,
    artifact_categories: Iterable[str] = DEFAULT_ARTIFACT_CATEGORIES,
    name: Optional[str] = None,
) -> DirectoryEntry:
    """Build the root entry of a repository tree.

    Examples:
        >>> root = repository_root(LocalBackend(Path("chef-repo")))
        >>> [c.name for c in root.children()]
        ['cookbook_artifacts', 'roles']
    """
    return DirectoryEntry(
        name or backend.label,
        backend=backend,
        child_factory=category_factory(artifact_categories),
    )
