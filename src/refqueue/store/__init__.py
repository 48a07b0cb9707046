"""Object store, ref registry, remote synchronizer and FIFO ordering."""

from .objects import ObjectStore
from .ordering import order_refs, oldest, sort_key
from .refs import Ref, RefRegistry
from .remote import (
    PUSH_NO_PRUNE,
    PUSH_PRUNE,
    PushReport,
    PushStatus,
    RemoteSynchronizer,
    parse_push_porcelain,
    ref_pattern,
)

__all__ = [
    "ObjectStore",
    "PUSH_NO_PRUNE",
    "PUSH_PRUNE",
    "PushReport",
    "PushStatus",
    "Ref",
    "RefRegistry",
    "RemoteSynchronizer",
    "oldest",
    "order_refs",
    "parse_push_porcelain",
    "ref_pattern",
    "sort_key",
]
