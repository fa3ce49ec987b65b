"""Tests for the server-backed repository adapter."""

import pytest

from repofs.backends import RemoteBackend
from repofs.exceptions import (
    BackendError,
    BackendInvalidResponseError,
    NotFoundError,
)
from repofs.utils import calculate_md5
from tests.conftest import SERVER_URL


@pytest.fixture
def seeded(server):
    server.add_item("roles", "web", {"name": "web"})
    server.add_item("roles", "base", {"name": "base"})
    server.add_artifact(
        "cookbook_artifacts",
        "foo",
        "111",
        {"metadata.rb": "name 'foo'", "recipes/default.rb": "package 'nginx'"},
    )
    server.add_artifact("cookbook_artifacts", "foo", "222", {"metadata.rb": "v2"})
    server.add_artifact("cookbook_artifacts", "apt-cacher-ng", "9f", {"README": "x"})
    return server


class TestRemoteListing:
    """Tests for mapping server listings onto tree names."""

    def test_root_lists_non_empty_categories(self, seeded, remote_backend):
        """Empty categories do not appear at the root."""
        assert remote_backend.list("") == ["cookbook_artifacts", "roles"]

    def test_plain_category_items_are_json_leaves(self, seeded, remote_backend):
        """Each item of a plain category is a .json leaf."""
        assert sorted(remote_backend.list("roles")) == ["base.json", "web.json"]

    def test_artifact_versions_flattened(self, seeded, remote_backend):
        """Every stored identifier becomes one name-identifier entry."""
        assert sorted(remote_backend.list("cookbook_artifacts")) == [
            "apt-cacher-ng-9f",
            "foo-111",
            "foo-222",
        ]

    def test_artifact_manifest_tree(self, seeded, remote_backend):
        """Manifest paths are exposed as nested directories."""
        assert remote_backend.list("cookbook_artifacts/foo-111") == [
            "metadata.rb",
            "recipes",
        ]
        assert remote_backend.list("cookbook_artifacts/foo-111/recipes") == [
            "default.rb"
        ]

    def test_unknown_category(self, seeded, remote_backend):
        """Paths outside the configured categories do not exist."""
        with pytest.raises(NotFoundError):
            remote_backend.list("data_bags")

    def test_missing_artifact(self, seeded, remote_backend):
        """Listing an unknown artifact raises NotFoundError."""
        with pytest.raises(NotFoundError):
            remote_backend.list("cookbook_artifacts/foo-333")

    def test_missing_subdirectory(self, seeded, remote_backend):
        """A prefix that matches no manifest path does not exist."""
        with pytest.raises(NotFoundError):
            remote_backend.list("cookbook_artifacts/foo-111/templates")

    def test_server_failure_is_backend_error(self, seeded, remote_backend):
        """A 5xx response surfaces as BackendError, not absence."""
        seeded.fail_prefixes.add("roles")
        with pytest.raises(BackendError) as exc_info:
            remote_backend.list("roles")
        assert not isinstance(exc_info.value, NotFoundError)

    def test_default_label_is_server_url(self, client):
        """Without an explicit label the server URL names the root."""
        backend = RemoteBackend(client, categories=["roles"])
        assert backend.label == SERVER_URL


class TestRemoteQueries:
    """Tests for exists/is_container/checksum."""

    def test_exists(self, seeded, remote_backend):
        """exists() covers every level of the tree."""
        assert remote_backend.exists("")
        assert remote_backend.exists("roles")
        assert remote_backend.exists("roles/web.json")
        assert remote_backend.exists("cookbook_artifacts/foo-111")
        assert remote_backend.exists("cookbook_artifacts/foo-111/recipes")
        assert remote_backend.exists("cookbook_artifacts/foo-111/recipes/default.rb")

    def test_exists_false_never_raises(self, seeded, remote_backend):
        """Absence, unknown categories and odd names all report False."""
        assert not remote_backend.exists("environments")
        assert not remote_backend.exists("data_bags")
        assert not remote_backend.exists("roles/db.json")
        assert not remote_backend.exists("roles/web")
        assert not remote_backend.exists("cookbook_artifacts/foo")
        assert not remote_backend.exists("cookbook_artifacts/foo-333/metadata.rb")

    def test_is_container(self, seeded, remote_backend):
        """Categories, artifacts and manifest prefixes are containers."""
        assert remote_backend.is_container("")
        assert remote_backend.is_container("environments")
        assert remote_backend.is_container("cookbook_artifacts/foo-111")
        assert remote_backend.is_container("cookbook_artifacts/foo-111/recipes")
        assert not remote_backend.is_container("roles/web.json")
        assert not remote_backend.is_container("cookbook_artifacts/foo-111/metadata.rb")
        assert not remote_backend.is_container("cookbook_artifacts/foo-333")

    def test_checksum_from_manifest(self, seeded, remote_backend):
        """Artifact files carry the manifest checksum."""
        assert remote_backend.checksum(
            "cookbook_artifacts/foo-222/metadata.rb"
        ) == calculate_md5(b"v2")

    def test_plain_items_have_no_checksum(self, seeded, remote_backend):
        """Plain items fall back to content comparison."""
        assert remote_backend.checksum("roles/web.json") is None


class TestRemoteReadWrite:
    """Tests for content transfer."""

    def test_read_plain_item(self, seeded, remote_backend):
        """Plain items are fetched from category/name."""
        assert remote_backend.read("roles/web.json") == b'{"name": "web"}'

    def test_read_artifact_file(self, seeded, remote_backend):
        """Artifact files are fetched from the files endpoint."""
        data = remote_backend.read("cookbook_artifacts/foo-111/recipes/default.rb")
        assert data == b"package 'nginx'"
        assert (
            "GET",
            "cookbook_artifacts/foo/111/files/recipes/default.rb",
        ) in seeded.requests

    def test_read_missing(self, seeded, remote_backend):
        """A 404 maps to NotFoundError."""
        with pytest.raises(NotFoundError):
            remote_backend.read("roles/db.json")

    def test_write_plain_item(self, server, remote_backend):
        """Writing a .json leaf stores the item on the server."""
        remote_backend.write("environments/prod.json", b'{"name": "prod"}')
        assert server.plain["environments"]["prod"] == b'{"name": "prod"}'

    def test_write_artifact_file_creates_version(self, server, remote_backend):
        """Writing into a new identifier creates that version."""
        remote_backend.write("cookbook_artifacts/foo-222/metadata.rb", b"name 'foo'")
        assert server.artifact_files("cookbook_artifacts", "foo", "222") == {
            "metadata.rb": b"name 'foo'"
        }

    def test_write_to_category_rejected(self, remote_backend):
        """Categories themselves cannot be written."""
        with pytest.raises(NotFoundError):
            remote_backend.write("roles", b"{}")

    def test_delete_artifact(self, seeded, remote_backend):
        """Deleting an artifact entry removes the whole version."""
        remote_backend.delete("cookbook_artifacts/foo-111")
        assert seeded.artifact_files("cookbook_artifacts", "foo", "111") is None
        assert seeded.artifact_files("cookbook_artifacts", "foo", "222") is not None

    def test_delete_artifact_subdirectory(self, seeded, remote_backend):
        """Deleting a manifest prefix removes every file below it."""
        remote_backend.delete("cookbook_artifacts/foo-111/recipes")
        assert seeded.artifact_files("cookbook_artifacts", "foo", "111") == {
            "metadata.rb": b"name 'foo'"
        }

    def test_delete_plain_item(self, seeded, remote_backend):
        """Deleting a .json leaf removes the item."""
        remote_backend.delete("roles/web.json")
        assert "web" not in seeded.plain["roles"]

    def test_delete_category_removes_items(self, seeded, remote_backend):
        """Deleting a category deletes everything listed in it."""
        remote_backend.delete("roles")
        assert seeded.plain["roles"] == {}

    def test_delete_missing(self, seeded, remote_backend):
        """Deleting an absent item raises NotFoundError."""
        with pytest.raises(NotFoundError):
            remote_backend.delete("roles/db.json")


class TestRemoteCache:
    """Tests for listing and manifest caching."""

    def _count(self, server, path):
        return sum(1 for method, p in server.requests if method == "GET" and p == path)

    def test_listing_cached(self, seeded, remote_backend):
        """Repeated listings hit the server once."""
        remote_backend.list("roles")
        remote_backend.list("roles")
        remote_backend.exists("roles/web.json")
        assert self._count(seeded, "roles") == 1

    def test_refresh_clears_cache(self, seeded, remote_backend):
        """refresh() forces the next listing to reach the server."""
        remote_backend.list("cookbook_artifacts/foo-111")
        remote_backend.refresh()
        remote_backend.list("cookbook_artifacts/foo-111")
        assert self._count(seeded, "cookbook_artifacts/foo/111") == 2

    def test_write_invalidates_listing(self, seeded, remote_backend):
        """A write makes the new item visible without refresh()."""
        assert "db.json" not in remote_backend.list("roles")
        remote_backend.write("roles/db.json", b"{}")
        assert "db.json" in remote_backend.list("roles")

    def test_write_invalidates_manifest(self, seeded, remote_backend):
        """A write to an artifact makes the new file visible."""
        remote_backend.list("cookbook_artifacts/foo-222")
        remote_backend.write("cookbook_artifacts/foo-222/README.md", b"hi")
        assert remote_backend.list("cookbook_artifacts/foo-222") == [
            "README.md",
            "metadata.rb",
        ]


class TestRemoteResponseValidation:
    """Malformed listings and manifests raise BackendInvalidResponseError."""

    @pytest.mark.parametrize(
        "listing",
        [
            {"foo": {"versions": [{"id": "111"}]}},
            {"foo": {"versions": "111"}},
            {"foo": ["111"]},
            {"foo": {}},
            {"foo": {"versions": [{"identifier": 111}]}},
            {"foo": {"versions": [{"identifier": ""}]}},
            {"foo": {"versions": [{"identifier": "1/2"}]}},
            {"foo": {"versions": [{"identifier": "1-2"}]}},
            {"foo/bar": {"versions": [{"identifier": "111"}]}},
        ],
    )
    def test_bad_artifact_listing(self, server, remote_backend, listing):
        """Listing entries must carry string identifiers usable as names."""
        server.responses["cookbook_artifacts"] = listing
        with pytest.raises(BackendInvalidResponseError) as exc_info:
            remote_backend.list("cookbook_artifacts")
        assert exc_info.value.path == "cookbook_artifacts"

    @pytest.mark.parametrize("listing", [{"a/b": "uri"}, {"": "uri"}, "roles"])
    def test_bad_plain_listing(self, server, remote_backend, listing):
        """Plain item names must be single path segments."""
        server.responses["roles"] = listing
        with pytest.raises(BackendInvalidResponseError) as exc_info:
            remote_backend.list("roles")
        assert exc_info.value.path == "roles"

    def test_plain_listing_as_array(self, server, remote_backend):
        """A JSON array of item names is accepted for plain categories."""
        server.responses["roles"] = ["web", "base"]
        assert sorted(remote_backend.list("roles")) == ["base.json", "web.json"]

    @pytest.mark.parametrize(
        "manifest",
        [
            {"files": [{"name": "metadata.rb"}]},
            {"files": [{"path": 7}]},
            {"files": [{"path": ""}]},
            {"files": [{"path": "../metadata.rb"}]},
            {"files": [{"path": "recipes//default.rb"}]},
            {"files": [{"path": "/metadata.rb"}]},
            {"files": [{"path": "metadata.rb", "checksum": 5}]},
            {"files": ["metadata.rb"]},
            {"files": "metadata.rb"},
            ["metadata.rb"],
        ],
    )
    def test_bad_manifest(self, seeded, remote_backend, manifest):
        """Manifest file entries need a clean relative path and string checksum."""
        seeded.responses["cookbook_artifacts/foo/111"] = manifest
        with pytest.raises(BackendInvalidResponseError) as exc_info:
            remote_backend.list("cookbook_artifacts/foo-111")
        assert exc_info.value.path == "cookbook_artifacts/foo-111"

    def test_bad_manifest_in_exists(self, seeded, remote_backend):
        """exists() reports a malformed manifest instead of answering False."""
        seeded.responses["cookbook_artifacts/foo/111"] = {"files": [{"name": "a"}]}
        with pytest.raises(BackendInvalidResponseError):
            remote_backend.exists("cookbook_artifacts/foo-111/metadata.rb")

    def test_manifest_without_checksum(self, seeded, remote_backend):
        """A missing checksum is allowed and means content is compared."""
        seeded.responses["cookbook_artifacts/foo/111"] = {
            "files": [{"path": "metadata.rb"}]
        }
        assert remote_backend.list("cookbook_artifacts/foo-111") == ["metadata.rb"]
        assert remote_backend.checksum("cookbook_artifacts/foo-111/metadata.rb") is None

    def test_failing_category_stays_visible_at_root(self, seeded, remote_backend):
        """The root still lists a category whose listing cannot be read."""
        seeded.responses["cookbook_artifacts"] = {"foo": {"versions": [{"id": "1"}]}}
        assert remote_backend.list("") == ["cookbook_artifacts", "roles"]
        seeded.fail_prefixes.add("roles")
        remote_backend.refresh()
        assert remote_backend.list("") == ["cookbook_artifacts", "roles"]
