"""Sync operations applying copies and deletes through a backend adapter."""

import logging

from ..backends.base import BackendAdapter
from ..exceptions import NotFoundError
from ..fs.entries import DirectoryEntry, Entry, FileEntry

logger = logging.getLogger(__name__)


class SyncOperations:
    """Copy/delete primitives writing to one destination backend."""

    def __init__(self, destination: BackendAdapter):
        """Initialize sync operations.

        Args:
            destination: Backend receiving writes and deletes
        """
        self.destination = destination

    def copy_entry(self, source: Entry) -> int:
        """Copy a source entry to the same path on the destination.

        Containers are copied leaf by leaf.

        Args:
            source: Entry to copy (file or directory)

        Returns:
            Number of files written
        """
        if isinstance(source, FileEntry):
            self.destination.write(source.path, source.read())
            logger.debug("Copied %s", source.path)
            return 1

        written = 0
        if isinstance(source, DirectoryEntry):
            for entry in source.walk():
                if isinstance(entry, FileEntry):
                    self.destination.write(entry.path, entry.read())
                    written += 1
        logger.debug("Copied %d file(s) under %s", written, source.path)
        return written

    def replace_entry(self, source: Entry) -> int:
        """Delete whatever is at the source's path, then copy the source.

        Used when a path changed kind (file <-> directory).
        """
        try:
            self.destination.delete(source.path)
        except NotFoundError:
            pass
        return self.copy_entry(source)

    def delete_path(self, path: str) -> None:
        """Delete a destination path (recursively for containers)."""
        self.destination.delete(path)
        logger.debug("Deleted %s", path)
