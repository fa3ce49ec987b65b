"""Exception hierarchy for repofs."""


class RepoFSError(Exception):
    """Base exception for all repofs errors."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class NotFoundError(RepoFSError):
    """Path does not exist on the queried backend."""


class MalformedEntryError(RepoFSError):
    """Artifact child name does not parse into ``name-identifier``."""


class BackendError(RepoFSError):
    """I/O or network failure while talking to a backend."""


class BackendNetworkError(BackendError):
    """Network failure (connection refused, timeout, DNS...)."""


class BackendAuthenticationError(BackendError):
    """Server rejected the configured API key."""


class BackendPermissionError(BackendError):
    """Server or filesystem refused access to a resource."""


class BackendRateLimitError(BackendError):
    """Server asked the client to slow down (HTTP 429)."""


class BackendInvalidResponseError(BackendError):
    """Server returned something that is not the expected payload."""


class ConfigError(RepoFSError):
    """Missing or invalid configuration."""
