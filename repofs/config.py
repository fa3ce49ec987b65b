"""Configuration management for repofs."""

import os
from pathlib import Path
from typing import Optional

from .exceptions import ConfigError
from .utils import (
    DEFAULT_ARTIFACT_CATEGORIES,
    DEFAULT_CATEGORIES,
    DEFAULT_TIMEOUT,
)


class Config:
    """Reads settings from environment variables and an optional config file.

    Environment variables take precedence over the config file, which
    holds ``KEY=VALUE`` lines using the same variable names.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Config file location. Defaults to
                ~/.config/repofs/config
        """
        if config_path is None:
            config_path = Path.home() / ".config" / "repofs" / "config"
        self.config_path = config_path

    def _load_file(self) -> dict[str, str]:
        if not self.config_path.is_file():
            return {}
        values: dict[str, str] = {}
        try:
            lines = self.config_path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise ConfigError(f"Cannot read config file {self.config_path}: {e}")
        for line in lines:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip().strip('"').strip("'")
        return values

    def _get(self, key: str) -> Optional[str]:
        value = os.environ.get(key)
        if value:
            return value
        return self._load_file().get(key) or None

    def _get_list(self, key: str, default: tuple[str, ...]) -> list[str]:
        value = self._get(key)
        if value is None:
            return list(default)
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def repo_path(self) -> Path:
        """Local repository directory."""
        return Path(self._get("REPOFS_REPO_PATH") or ".")

    @property
    def server_url(self) -> Optional[str]:
        """Base URL of the remote server API."""
        value = self._get("REPOFS_SERVER_URL")
        return value.rstrip("/") if value else None

    @property
    def api_key(self) -> Optional[str]:
        """Static API token sent as a bearer header (optional)."""
        return self._get("REPOFS_API_KEY")

    @property
    def categories(self) -> list[str]:
        """Top-level content categories exposed by the remote server."""
        return self._get_list("REPOFS_CATEGORIES", DEFAULT_CATEGORIES)

    @property
    def artifact_categories(self) -> list[str]:
        """Categories whose items are stored as ``name-identifier``."""
        return self._get_list(
            "REPOFS_ARTIFACT_CATEGORIES", DEFAULT_ARTIFACT_CATEGORIES
        )

    @property
    def timeout(self) -> float:
        """HTTP request timeout in seconds."""
        value = self._get("REPOFS_TIMEOUT")
        if value is None:
            return DEFAULT_TIMEOUT
        try:
            timeout = float(value)
        except ValueError:
            raise ConfigError(f"REPOFS_TIMEOUT must be a number, got '{value}'")
        if timeout <= 0:
            raise ConfigError("REPOFS_TIMEOUT must be positive")
        return timeout

    @property
    def workers(self) -> int:
        """Default number of parallel workers for diff/sync."""
        value = self._get("REPOFS_WORKERS")
        if value is None:
            return 1
        try:
            workers = int(value)
        except ValueError:
            raise ConfigError(f"REPOFS_WORKERS must be an integer, got '{value}'")
        if workers < 1:
            raise ConfigError("REPOFS_WORKERS must be at least 1")
        return workers


config = Config()
