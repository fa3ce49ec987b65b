"""Backend adapter contract shared by the local and remote backends."""

from abc import ABC, abstractmethod
from typing import Optional


class BackendAdapter(ABC):
    """Abstracts where the bytes of a repository tree actually live.

    Paths are root-relative and slash separated; ``""`` is the root.
    Implementations must be safe for concurrent reads and must make
    concurrent writes to distinct paths safe.
    """

    label: str = "backend"
    """Display name used for the root entry"""

    @abstractmethod
    def list(self, path: str) -> list[str]:
        """List child names of the container at ``path``.

        Raises:
            NotFoundError: If the container does not exist
            BackendError: On I/O or network failure
        """

    @abstractmethod
    def read(self, path: str) -> bytes:
        """Read the content of the leaf at ``path``.

        Raises:
            NotFoundError: If the leaf does not exist
            BackendError: On I/O or network failure
        """

    @abstractmethod
    def write(self, path: str, data: bytes) -> None:
        """Create or replace the leaf at ``path``."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete the leaf or container (recursively) at ``path``.

        Raises:
            NotFoundError: If nothing exists at ``path``
        """

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return whether ``path`` exists. Never raises for absence."""

    @abstractmethod
    def is_container(self, path: str) -> bool:
        """Return True if ``path`` is an existing container."""

    def checksum(self, path: str) -> Optional[str]:
        """Return a content digest for ``path`` if the backend knows one cheaply."""
        return None

    def refresh(self) -> None:
        """Drop any cached listings so the next traversal sees fresh state."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(label='{self.label}')"
