"""Backend adapter for a repository served by the remote API."""

import logging
import threading
from collections.abc import Iterable
from typing import Any, Optional

from ..api import RepoFSClient
from ..exceptions import BackendInvalidResponseError, NotFoundError, RepoFSError
from ..utils import (
    ARTIFACT_SEPARATOR,
    JSON_SUFFIX,
    PATH_SEPARATOR,
    format_artifact_name,
    join_path,
    parse_artifact_name,
    split_path,
)
from .base import BackendAdapter

logger = logging.getLogger(__name__)


def _is_relative_path(path: Any) -> bool:
    """Whether a manifest path is a clean ``a/b/c`` path below the artifact."""
    if not isinstance(path, str):
        return False
    segments = path.split(PATH_SEPARATOR)
    return all(s and s not in (".", "..") for s in segments)


class RemoteBackend(BackendAdapter):
    """Maps root-relative paths onto server resources.

    Plain categories expose one JSON leaf per item (``roles/web.json`` is
    the resource ``roles/web``). Artifact categories expose one container
    per stored identifier (``cookbook_artifacts/apache-1a2b`` is the
    resource ``cookbook_artifacts/apache/1a2b``) whose files are described
    by the artifact manifest.

    Category listings and artifact manifests are cached until
    :meth:`refresh` is called or the cached resource is written to.
    """

    def __init__(
        self,
        client: RepoFSClient,
        categories: Iterable[str],
        artifact_categories: Iterable[str] = (),
        label: Optional[str] = None,
    ):
        """Initialize remote backend.

        Args:
            client: API client used for all requests
            categories: Top-level categories exposed at the root
            artifact_categories: Categories stored as name-identifier artifacts
            label: Display name for the root entry (defaults to server URL)
        """
        self.client = client
        self.categories = list(categories)
        self.artifact_categories = set(artifact_categories)
        self.label = label or client.server_url
        self._lock = threading.Lock()
        self._listings: dict[str, list[str]] = {}
        self._manifests: dict[tuple[str, str, str], dict[str, Optional[str]]] = {}

    def refresh(self) -> None:
        with self._lock:
            self._listings.clear()
            self._manifests.clear()
        logger.debug("Cleared remote listing cache for %s", self.label)

    # =========================
    # Resource resolution
    # =========================

    def _category(self, path: str, name: str) -> str:
        if name not in self.categories:
            raise NotFoundError(f"Unknown category: {name}", path=path)
        return name

    def _artifact_parts(self, path: str, segments: list[str]) -> tuple[str, str, str]:
        category = segments[0]
        parsed = parse_artifact_name(segments[1])
        if parsed is None:
            raise NotFoundError(f"Not an artifact name: {segments[1]}", path=path)
        return category, parsed[0], parsed[1]

    def _plain_item(self, path: str, segments: list[str]) -> str:
        if len(segments) != 2 or not segments[1].endswith(JSON_SUFFIX):
            raise NotFoundError(f"Path not found: {path}", path=path)
        item = segments[1][: -len(JSON_SUFFIX)]
        if not item:
            raise NotFoundError(f"Path not found: {path}", path=path)
        return f"{segments[0]}/{item}"

    def _category_visible(self, category: str) -> bool:
        # Empty categories are indistinguishable from absent ones. A category
        # whose listing fails stays visible so the failure is reported at
        # its own path instead of at the root.
        try:
            return bool(self._list_category(category))
        except NotFoundError:
            return False
        except RepoFSError as e:
            logger.debug("Listing of %s failed: %s", category, e)
            return True

    def _list_category(self, category: str) -> list[str]:
        with self._lock:
            cached = self._listings.get(category)
        if cached is not None:
            return cached

        data = self.client.get_json(category)
        if isinstance(data, list):
            items: dict[str, Any] = {str(name): {} for name in data}
        elif isinstance(data, dict):
            items = data
        else:
            raise BackendInvalidResponseError(
                f"Unexpected listing for {category}", path=category
            )

        if category in self.artifact_categories:
            names = []
            for item_name, info in items.items():
                for identifier in self._identifiers(category, item_name, info):
                    names.append(format_artifact_name(item_name, identifier))
        else:
            names = []
            for item_name in items:
                self._check_segment(category, item_name)
                names.append(f"{item_name}{JSON_SUFFIX}")

        logger.debug("Listed %d items in remote category %s", len(names), category)
        with self._lock:
            self._listings[category] = names
        return names

    def _check_segment(self, category: str, name: Any) -> str:
        """Reject listing names that cannot be a single path segment."""
        if not isinstance(name, str) or not name or PATH_SEPARATOR in name:
            raise BackendInvalidResponseError(
                f"Invalid name in listing for {category}: {name!r}", path=category
            )
        return name

    def _identifiers(self, category: str, item_name: str, info: Any) -> list[str]:
        """Extract version identifiers from one artifact listing entry.

        Raises:
            BackendInvalidResponseError: If the entry is not shaped like
                ``{"versions": [{"identifier": "<id>"}, ...]}``
        """
        self._check_segment(category, item_name)
        versions = info.get("versions") if isinstance(info, dict) else None
        if not isinstance(versions, list):
            raise BackendInvalidResponseError(
                f"Listing entry for {item_name} has no version list", path=category
            )
        identifiers = []
        for version in versions:
            identifier = (
                version.get("identifier") if isinstance(version, dict) else None
            )
            if not isinstance(identifier, str) or ARTIFACT_SEPARATOR in identifier:
                raise BackendInvalidResponseError(
                    f"Version of {item_name} has no usable identifier: {version!r}",
                    path=category,
                )
            identifiers.append(self._check_segment(category, identifier))
        return identifiers

    def _manifest(
        self, category: str, item_name: str, identifier: str
    ) -> dict[str, Optional[str]]:
        """Return ``{file path: checksum}`` for one artifact."""
        key = (category, item_name, identifier)
        with self._lock:
            cached = self._manifests.get(key)
        if cached is not None:
            return cached

        path = join_path(category, format_artifact_name(item_name, identifier))
        data = self.client.get_json(f"{category}/{item_name}/{identifier}")
        files = data.get("files") if isinstance(data, dict) else None
        if not isinstance(files, list):
            raise BackendInvalidResponseError(
                f"Manifest for {item_name}-{identifier} has no file list", path=path
            )
        manifest: dict[str, Optional[str]] = {}
        for entry in files:
            file_path = entry.get("path") if isinstance(entry, dict) else None
            checksum = entry.get("checksum") if isinstance(entry, dict) else None
            if not _is_relative_path(file_path) or not (
                checksum is None or isinstance(checksum, str)
            ):
                raise BackendInvalidResponseError(
                    f"Invalid file entry in manifest for {item_name}-{identifier}: "
                    f"{entry!r}",
                    path=path,
                )
            manifest[file_path] = checksum
        with self._lock:
            self._manifests[key] = manifest
        return manifest

    def _invalidate(self, category: str, key: Optional[tuple] = None) -> None:
        with self._lock:
            self._listings.pop(category, None)
            if key is not None:
                self._manifests.pop(key, None)

    # =========================
    # Adapter contract
    # =========================

    def list(self, path: str) -> list[str]:
        segments = split_path(path)
        if not segments:
            return [c for c in self.categories if self._category_visible(c)]

        category = self._category(path, segments[0])
        if len(segments) == 1:
            return self._list_category(category)

        if category not in self.artifact_categories:
            raise NotFoundError(f"Not a directory: {path}", path=path)

        manifest = self._manifest(*self._artifact_parts(path, segments))
        prefix = join_path(*segments[2:])
        names: set[str] = set()
        for file_path in manifest:
            if prefix:
                if not file_path.startswith(prefix + "/"):
                    continue
                rest = file_path[len(prefix) + 1 :]
            else:
                rest = file_path
            names.add(rest.split("/", 1)[0])

        if prefix and not names:
            raise NotFoundError(f"Directory not found: {path}", path=path)
        return sorted(names)

    def read(self, path: str) -> bytes:
        segments = split_path(path)
        if len(segments) < 2:
            raise NotFoundError(f"Not a file: {path}", path=path)
        category = self._category(path, segments[0])

        if category not in self.artifact_categories:
            return self.client.get_content(self._plain_item(path, segments))

        category, item_name, identifier = self._artifact_parts(path, segments)
        file_path = join_path(*segments[2:])
        if not file_path:
            raise NotFoundError(f"Not a file: {path}", path=path)
        return self.client.get_content(
            f"{category}/{item_name}/{identifier}/files/{file_path}"
        )

    def write(self, path: str, data: bytes) -> None:
        segments = split_path(path)
        if len(segments) < 2:
            raise NotFoundError(f"Cannot write to {path}", path=path)
        category = self._category(path, segments[0])

        if category not in self.artifact_categories:
            self.client.put_content(
                self._plain_item(path, segments), data, "application/json"
            )
            self._invalidate(category)
            return

        category, item_name, identifier = self._artifact_parts(path, segments)
        file_path = join_path(*segments[2:])
        if not file_path:
            raise NotFoundError(f"Cannot write to artifact root {path}", path=path)
        self.client.put_content(
            f"{category}/{item_name}/{identifier}/files/{file_path}", data
        )
        self._invalidate(category, (category, item_name, identifier))

    def delete(self, path: str) -> None:
        segments = split_path(path)
        if not segments:
            raise NotFoundError("Cannot delete the server root", path=path)
        category = self._category(path, segments[0])
        if len(segments) == 1:
            for name in self._list_category(category):
                self.delete(join_path(category, name))
            return

        if category not in self.artifact_categories:
            self.client.delete(self._plain_item(path, segments))
            self._invalidate(category)
            return

        category, item_name, identifier = self._artifact_parts(path, segments)
        key = (category, item_name, identifier)
        resource = f"{category}/{item_name}/{identifier}"
        file_path = join_path(*segments[2:])
        if not file_path:
            self.client.delete(resource)
        else:
            manifest = self._manifest(category, item_name, identifier)
            if file_path in manifest:
                targets = [file_path]
            else:
                targets = [p for p in manifest if p.startswith(file_path + "/")]
            if not targets:
                raise NotFoundError(f"Path not found: {path}", path=path)
            for target in targets:
                self.client.delete(f"{resource}/files/{target}")
        self._invalidate(category, key)

    def exists(self, path: str) -> bool:
        try:
            segments = split_path(path)
            if not segments:
                return True
            category = self._category(path, segments[0])
            if len(segments) == 1:
                return bool(self._list_category(category))
            if category not in self.artifact_categories:
                self._plain_item(path, segments)
                return segments[1] in self._list_category(category)
            if len(segments) == 2:
                return segments[1] in self._list_category(category)
            manifest = self._manifest(*self._artifact_parts(path, segments))
            file_path = join_path(*segments[2:])
            return file_path in manifest or any(
                p.startswith(file_path + "/") for p in manifest
            )
        except NotFoundError:
            return False

    def is_container(self, path: str) -> bool:
        segments = split_path(path)
        if not segments:
            return True
        if len(segments) == 1:
            return segments[0] in self.categories
        if segments[0] not in self.artifact_categories:
            return False
        if len(segments) == 2:
            return self.exists(path)
        try:
            manifest = self._manifest(*self._artifact_parts(path, segments))
        except NotFoundError:
            return False
        file_path = join_path(*segments[2:])
        return any(p.startswith(file_path + "/") for p in manifest)

    def checksum(self, path: str) -> Optional[str]:
        segments = split_path(path)
        if len(segments) < 3 or segments[0] not in self.artifact_categories:
            return None
        manifest = self._manifest(*self._artifact_parts(path, segments))
        return manifest.get(join_path(*segments[2:]))
