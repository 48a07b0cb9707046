"""Git process plumbing shared by the store, registry and synchronizer."""

from .exceptions import (
    ConfigError,
    CorruptState,
    IOFailure,
    NotFound,
    OperationCancelled,
    RefQueueError,
    RegistryUnavailable,
    RemoteSyncError,
    StoreUnavailable,
)
from .git import GitResult, get_git_version, is_git_available, run_git
from .repository import Repository

__all__ = [
    "ConfigError",
    "CorruptState",
    "GitResult",
    "IOFailure",
    "NotFound",
    "OperationCancelled",
    "RefQueueError",
    "RegistryUnavailable",
    "RemoteSyncError",
    "Repository",
    "StoreUnavailable",
    "get_git_version",
    "is_git_available",
    "run_git",
]
