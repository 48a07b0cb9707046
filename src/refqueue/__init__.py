"""
refqueue - a distributed FIFO queue stored as git refs.

Payloads are stored as git blobs, queue entries are refs pointing at them,
and replicas share state by pushing and fetching a ref namespace.

Usage:
    from refqueue import RefQueue, Repository

    queue = RefQueue(Repository("/var/lib/refqueue"), remote="git@host:queue.git")
    queue.join()
    item = queue.pop()
    queue.publish()
"""

from .core.exceptions import (
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
from .core.repository import Repository
from .queue import QueueItem, RefQueue
from .store import (
    ObjectStore,
    PushReport,
    Ref,
    RefRegistry,
    RemoteSynchronizer,
    oldest,
    order_refs,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "CorruptState",
    "IOFailure",
    "NotFound",
    "ObjectStore",
    "OperationCancelled",
    "PushReport",
    "QueueItem",
    "Ref",
    "RefQueue",
    "RefQueueError",
    "RefRegistry",
    "RegistryUnavailable",
    "RemoteSyncError",
    "RemoteSynchronizer",
    "Repository",
    "StoreUnavailable",
    "oldest",
    "order_refs",
]
