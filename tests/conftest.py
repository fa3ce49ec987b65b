"""Shared fixtures: on-disk repositories and an in-process fake server."""

import json
from pathlib import Path
from typing import Any, Optional, Union

import httpx
import pytest

from repofs.api import RepoFSClient
from repofs.backends import LocalBackend, RemoteBackend
from repofs.fs import repository_root
from repofs.utils import calculate_md5

SERVER_URL = "https://repo.test/api"

PLAIN_CATEGORIES = ["roles", "environments"]
ARTIFACT_CATEGORIES = ["cookbook_artifacts"]


def make_tree(root: Path, files: dict[str, Union[str, bytes]]) -> Path:
    """Write ``{relative path: content}`` under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for rel_path, content in files.items():
        target = root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        target.write_bytes(content)
    return root


class FakeServer:
    """Minimal implementation of the server API served through MockTransport."""

    def __init__(self):
        self.plain: dict[str, dict[str, bytes]] = {c: {} for c in PLAIN_CATEGORIES}
        self.artifacts: dict[str, dict[str, dict[str, dict[str, bytes]]]] = {
            c: {} for c in ARTIFACT_CATEGORIES
        }
        self.fail_prefixes: set[str] = set()
        # GET bodies served as-is, keyed by resource path
        self.responses: dict[str, Any] = {}
        self.requests: list[tuple[str, str]] = []

    # Seeding helpers

    def add_item(self, category: str, name: str, document: Union[dict, bytes]) -> None:
        if isinstance(document, dict):
            document = json.dumps(document).encode("utf-8")
        self.plain[category][name] = document

    def add_artifact(
        self,
        category: str,
        name: str,
        identifier: str,
        files: dict[str, Union[str, bytes]],
    ) -> None:
        versions = self.artifacts[category].setdefault(name, {})
        versions[identifier] = {
            p: c.encode("utf-8") if isinstance(c, str) else c for p, c in files.items()
        }

    def artifact_files(
        self, category: str, name: str, identifier: str
    ) -> Optional[dict[str, bytes]]:
        return self.artifacts[category].get(name, {}).get(identifier)

    # Request handling

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len("/api/") :]
        self.requests.append((request.method, path))

        if any(path.startswith(prefix) for prefix in self.fail_prefixes):
            return httpx.Response(500, json={"error": "internal failure"})
        if request.method == "GET" and path in self.responses:
            return httpx.Response(200, json=self.responses[path])

        segments = path.split("/")
        category = segments[0]
        if category in self.plain:
            return self._handle_plain(request, category, segments[1:])
        if category in self.artifacts:
            return self._handle_artifact(request, category, segments[1:])
        return httpx.Response(404, json={"error": "not found"})

    def _handle_plain(
        self, request: httpx.Request, category: str, rest: list[str]
    ) -> httpx.Response:
        items = self.plain[category]
        if not rest:
            return httpx.Response(
                200, json={name: f"{SERVER_URL}/{category}/{name}" for name in items}
            )
        name = rest[0]
        if request.method == "PUT":
            items[name] = request.content
            return httpx.Response(201, json={"uri": f"{category}/{name}"})
        if name not in items:
            return httpx.Response(404, json={"error": "not found"})
        if request.method == "DELETE":
            del items[name]
            return httpx.Response(200, json={})
        return httpx.Response(
            200, content=items[name], headers={"Content-Type": "application/json"}
        )

    def _handle_artifact(
        self, request: httpx.Request, category: str, rest: list[str]
    ) -> httpx.Response:
        store = self.artifacts[category]
        if not rest:
            return httpx.Response(
                200,
                json={
                    name: {"versions": [{"identifier": i} for i in sorted(versions)]}
                    for name, versions in store.items()
                    if versions
                },
            )
        if len(rest) < 2:
            return httpx.Response(404, json={"error": "not found"})

        name, identifier = rest[0], rest[1]
        files = store.get(name, {}).get(identifier)

        if len(rest) == 2:
            if files is None:
                return httpx.Response(404, json={"error": "not found"})
            if request.method == "DELETE":
                del store[name][identifier]
                return httpx.Response(200, json={})
            return httpx.Response(
                200,
                json={
                    "name": name,
                    "identifier": identifier,
                    "files": [
                        {"path": p, "checksum": calculate_md5(c)}
                        for p, c in sorted(files.items())
                    ],
                },
            )

        if rest[2] != "files" or len(rest) < 4:
            return httpx.Response(404, json={"error": "not found"})
        file_path = "/".join(rest[3:])

        if request.method == "PUT":
            store.setdefault(name, {}).setdefault(identifier, {})[file_path] = (
                request.content
            )
            return httpx.Response(201, json={})
        if files is None or file_path not in files:
            return httpx.Response(404, json={"error": "not found"})
        if request.method == "DELETE":
            del files[file_path]
            return httpx.Response(200, json={})
        return httpx.Response(
            200,
            content=files[file_path],
            headers={"Content-Type": "application/octet-stream"},
        )


@pytest.fixture
def server():
    """Provide an empty fake server."""
    return FakeServer()


@pytest.fixture
def client(server):
    """Provide an API client wired to the fake server."""
    client = RepoFSClient(
        server_url=SERVER_URL,
        api_key="",
        max_retries=0,
        retry_delay=0,
        timeout=5.0,
        transport=httpx.MockTransport(server.handler),
    )
    yield client
    client.close()


@pytest.fixture
def remote_backend(client):
    """Provide a remote backend over the fake server."""
    return RemoteBackend(
        client,
        categories=ARTIFACT_CATEGORIES + PLAIN_CATEGORIES,
        artifact_categories=ARTIFACT_CATEGORIES,
        label="server",
    )


@pytest.fixture
def remote_root(remote_backend):
    return repository_root(remote_backend, artifact_categories=ARTIFACT_CATEGORIES)


@pytest.fixture
def local_dir(tmp_path):
    path = tmp_path / "repo"
    path.mkdir()
    return path


@pytest.fixture
def local_backend(local_dir):
    return LocalBackend(local_dir)


@pytest.fixture
def local_root(local_backend):
    return repository_root(local_backend, artifact_categories=ARTIFACT_CATEGORIES)
