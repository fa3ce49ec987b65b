"""Backend adapter for a repository stored in a local directory."""

import logging
import shutil
import threading
from pathlib import Path
from typing import Optional

from ..exceptions import BackendError, BackendPermissionError, NotFoundError
from ..utils import calculate_md5, split_path
from .base import BackendAdapter

logger = logging.getLogger(__name__)


class LocalBackend(BackendAdapter):
    """Maps root-relative paths onto files under a local directory.

    Examples:
        >>> backend = LocalBackend(Path("~/chef-repo").expanduser())
        >>> backend.list("roles")
        ['base.json', 'web.json']
    """

    def __init__(
        self,
        root: Path,
        exclude_dot_files: bool = True,
        label: Optional[str] = None,
    ):
        """Initialize local backend.

        Args:
            root: Repository directory (need not exist yet)
            exclude_dot_files: Whether to hide files/folders starting with dot
            label: Display name for the root entry (defaults to "local")
        """
        self.root = Path(root)
        self.exclude_dot_files = exclude_dot_files
        self.label = label or "local"
        self._write_lock = threading.Lock()

    def _resolve(self, path: str) -> Path:
        segments = split_path(path)
        if any(s in (".", "..") for s in segments):
            raise BackendError(f"Invalid path: {path}", path=path)
        return self.root.joinpath(*segments)

    def list(self, path: str) -> list[str]:
        target = self._resolve(path)
        try:
            names = [
                item.name
                for item in target.iterdir()
                if not (self.exclude_dot_files and item.name.startswith("."))
            ]
        except FileNotFoundError as e:
            raise NotFoundError(f"Directory not found: {path}", path=path) from e
        except NotADirectoryError as e:
            raise BackendError(f"Not a directory: {path}", path=path) from e
        except PermissionError as e:
            raise BackendPermissionError(
                f"Permission denied: {path}", path=path
            ) from e
        except OSError as e:
            raise BackendError(f"Failed to list {path}: {e}", path=path) from e

        logger.debug("Listed %d entries in %s", len(names), target)
        return names

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"File not found: {path}", path=path) from e
        except IsADirectoryError as e:
            raise BackendError(f"Is a directory: {path}", path=path) from e
        except PermissionError as e:
            raise BackendPermissionError(
                f"Permission denied: {path}", path=path
            ) from e
        except OSError as e:
            raise BackendError(f"Failed to read {path}: {e}", path=path) from e

    def write(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        with self._write_lock:
            try:
                # Ensure parent directory exists
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
            except PermissionError as e:
                raise BackendPermissionError(
                    f"Permission denied: {path}", path=path
                ) from e
            except OSError as e:
                raise BackendError(f"Failed to write {path}: {e}", path=path) from e
        logger.debug("Wrote %d bytes to %s", len(data), target)

    def delete(self, path: str) -> None:
        if not split_path(path):
            raise BackendError("Refusing to delete the repository root", path=path)
        target = self._resolve(path)
        with self._write_lock:
            try:
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                else:
                    target.unlink()
            except FileNotFoundError as e:
                raise NotFoundError(f"Path not found: {path}", path=path) from e
            except PermissionError as e:
                raise BackendPermissionError(
                    f"Permission denied: {path}", path=path
                ) from e
            except OSError as e:
                raise BackendError(f"Failed to delete {path}: {e}", path=path) from e
        logger.debug("Deleted %s", target)

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).exists()
        except OSError as e:
            raise BackendError(f"Failed to stat {path}: {e}", path=path) from e

    def is_container(self, path: str) -> bool:
        try:
            return self._resolve(path).is_dir()
        except OSError as e:
            raise BackendError(f"Failed to stat {path}: {e}", path=path) from e

    def checksum(self, path: str) -> Optional[str]:
        return calculate_md5(self.read(path))
