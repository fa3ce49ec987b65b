"""Backend adapters exposing local and remote repositories as trees."""

from .base import BackendAdapter
from .local import LocalBackend
from .remote import RemoteBackend

__all__ = [
    "BackendAdapter",
    "LocalBackend",
    "RemoteBackend",
]
