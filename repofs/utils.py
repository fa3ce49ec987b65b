"""Utility functions for repofs paths and content."""

import hashlib
import json
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

PATH_SEPARATOR: str = "/"

# Separator between item name and identifier in artifact names (foo-1a2b3c)
ARTIFACT_SEPARATOR: str = "-"

# Suffix of plain JSON documents (roles/web.json)
JSON_SUFFIX: str = ".json"

# Retry configuration for transient HTTP errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds
DEFAULT_TIMEOUT: float = 30.0  # seconds

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "cookbook_artifacts",
    "roles",
    "environments",
    "nodes",
)
DEFAULT_ARTIFACT_CATEGORIES: tuple[str, ...] = ("cookbook_artifacts",)


# =============================================================================
# Path helpers
# =============================================================================


def join_path(*parts: str) -> str:
    """Join root-relative path segments, ignoring empty ones.

    Examples:
        >>> join_path("", "roles", "web.json")
        'roles/web.json'
    """
    return PATH_SEPARATOR.join(
        p.strip(PATH_SEPARATOR) for p in parts if p.strip(PATH_SEPARATOR)
    )


def split_path(path: str) -> list[str]:
    """Split a root-relative path into its segments."""
    return [p for p in path.split(PATH_SEPARATOR) if p]


def normalize_path(path: Optional[str]) -> str:
    """Normalize user input (``/roles/``, ``./roles``) to ``roles``."""
    if not path:
        return ""
    segments = [p for p in split_path(path) if p != "."]
    if ".." in segments:
        raise ValueError(f"Path must not contain '..': {path}")
    return PATH_SEPARATOR.join(segments)


def validate_name(name: str) -> str:
    """Check that ``name`` is a usable path segment.

    Raises:
        ValueError: If the name is empty or contains the path separator
    """
    if not name:
        raise ValueError("Entry name must not be empty")
    if PATH_SEPARATOR in name:
        raise ValueError(f"Entry name must not contain '{PATH_SEPARATOR}': {name}")
    return name


def parse_artifact_name(name: str) -> Optional[tuple[str, str]]:
    """Split an artifact name into ``(item_name, identifier)``.

    The identifier is everything after the last hyphen, so item names
    may themselves contain hyphens (``apt-cacher-1a2b`` -> ``apt-cacher``,
    ``1a2b``).

    Returns:
        Tuple of item name and identifier, or None if the name does not
        have the ``name-identifier`` form
    """
    item_name, sep, identifier = name.rpartition(ARTIFACT_SEPARATOR)
    if not sep or not item_name or not identifier:
        return None
    if PATH_SEPARATOR in item_name or PATH_SEPARATOR in identifier:
        return None
    return item_name, identifier


def format_artifact_name(item_name: str, identifier: str) -> str:
    """Build ``name-identifier`` from its parts."""
    return f"{item_name}{ARTIFACT_SEPARATOR}{identifier}"


# =============================================================================
# Content helpers
# =============================================================================


def calculate_md5(data: bytes) -> str:
    """Return the hex MD5 digest used as content checksum."""
    return hashlib.md5(data).hexdigest()


def json_equal(left: bytes, right: bytes) -> bool:
    """Compare two JSON documents ignoring formatting and key order.

    Returns False if either side is not valid JSON.
    """
    try:
        return bool(json.loads(left) == json.loads(right))
    except (ValueError, UnicodeDecodeError):
        return False
