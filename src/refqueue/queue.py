"""FIFO queue over a ref namespace.

Each queued item is a blob holding the payload plus a ref
``<namespace><ULID>`` pointing at it. Popping claims the oldest item by
deleting its ref; whoever deletes it first owns it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from ulid import ULID

from refqueue.config import DEFAULT_NAMESPACE, validate_namespace
from refqueue.core.exceptions import ConfigError, NotFound, OperationCancelled
from refqueue.core.repository import Repository
from refqueue.store.objects import ObjectStore
from refqueue.store.ordering import oldest
from refqueue.store.refs import Ref, RefRegistry
from refqueue.store.remote import PUSH_PRUNE, PushReport, RemoteSynchronizer, ref_pattern

logger = logging.getLogger(__name__)


def _generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


@dataclass(frozen=True)
class QueueItem:
    """A payload together with the ref that identified it in the queue."""

    name: str
    hash: str
    payload: bytes


class RefQueue:
    """
    Distributed FIFO queue stored as refs in a git replica.

    Producers ``enqueue`` payloads; consumers ``pop`` the oldest one. Any
    number of processes may share a replica, and replicas on different
    nodes converge through ``pull``/``publish`` against a shared remote.

    Ordering is by ref timestamp at one-second resolution, ties broken by
    name. Names are ULIDs, so items enqueued within one second on the same
    node still come out in enqueue order.
    """

    def __init__(
        self,
        repo: Repository,
        namespace: str = DEFAULT_NAMESPACE,
        remote: Optional[str] = None,
    ) -> None:
        self.repo = repo
        self.namespace = validate_namespace(namespace)
        self.remote = remote
        self.objects = ObjectStore(repo)
        self.refs = RefRegistry(repo)
        self.sync = RemoteSynchronizer(repo)

    @property
    def pattern(self) -> str:
        return ref_pattern(self.namespace)

    def enqueue(self, payload: bytes, *, cancel: threading.Event | None = None) -> QueueItem:
        """Store ``payload`` and register it at the tail of the queue."""
        object_id = self.objects.write(payload, cancel=cancel)
        name = f"{self.namespace}{_generate_ulid()}"
        self.refs.set_ref(name, object_id, cancel=cancel)
        logger.debug("Enqueued %s -> %s", name, object_id)
        return QueueItem(name=name, hash=object_id, payload=payload)

    def items(self, *, cancel: threading.Event | None = None) -> list[Ref]:
        """List queued refs oldest first."""
        return self.refs.list_refs(self.namespace, cancel=cancel)

    def size(self) -> int:
        return len(self.refs.list_refs(self.namespace))

    def peek(self) -> Ref | None:
        return oldest(self.refs.list_refs(self.namespace))

    def pop(
        self,
        *,
        cancel: threading.Event | None = None,
        max_attempts: Optional[int] = None,
    ) -> QueueItem | None:
        """
        Claim and return the oldest item, or None if the queue is empty.

        The payload is read before the claim so a failed read never loses an
        item. If another consumer deletes the ref first, the queue is listed
        again and the new head is tried; every lost race means someone else
        made progress.

        Args:
            cancel: Checked before every attempt and passed to each git call.
            max_attempts: Give up after this many lost races by re-raising
                the last ``NotFound``. Unbounded by default.

        Raises:
            OperationCancelled: ``cancel`` was set.
        """
        lost = 0
        while True:
            if cancel is not None and cancel.is_set():
                raise OperationCancelled(
                    f"Pop from {self.namespace} cancelled after {lost} lost claim(s)",
                    operation="pop",
                    arguments=(self.namespace,),
                )

            head = oldest(self.refs.list_refs(self.namespace, cancel=cancel))
            if head is None:
                return None

            payload = self.objects.read(head.target, cancel=cancel)
            try:
                self.refs.remove_ref(head.name, head.target, cancel=cancel)
            except NotFound:
                lost += 1
                logger.info("Lost claim on %s to another consumer (attempt %d)", head.name, lost)
                if max_attempts is not None and lost >= max_attempts:
                    raise
                continue

            logger.debug("Claimed %s", head.name)
            return QueueItem(name=head.name, hash=head.target, payload=payload)

    def release(self, item: QueueItem, *, cancel: threading.Event | None = None) -> None:
        """Put a claimed item back under its original name.

        The ref gets a fresh timestamp, so the item moves behind everything
        enqueued in earlier seconds. Within its own second the original name
        still decides, which can put it ahead of items enqueued moments ago.
        """
        self.refs.set_ref(item.name, item.hash, cancel=cancel)
        logger.debug("Released %s", item.name)

    def delete(self, name: str, *, cancel: threading.Event | None = None) -> None:
        """Remove an item by ref name without reading it."""
        if not name.startswith(self.namespace):
            raise ValueError(f"{name!r} is not in namespace {self.namespace!r}")
        self.refs.remove_ref(name, cancel=cancel)

    # ── Remote ───────────────────────────────────────────────────

    def _require_remote(self) -> str:
        if not self.remote:
            raise ConfigError("No remote configured for this queue")
        return self.remote

    def join(self, *, cancel: threading.Event | None = None) -> None:
        """Make the local replica a mirror of the remote queue.

        Bootstraps a shallow clone when the replica does not exist yet,
        then fetches the namespace.
        """
        remote = self._require_remote()
        if not self.repo.is_repo():
            self.sync.bootstrap(remote, cancel=cancel)
        self.pull(cancel=cancel)

    def pull(self, prune: bool = True, *, cancel: threading.Event | None = None) -> None:
        """Fetch the namespace from the remote.

        With ``prune`` (the default) items claimed elsewhere disappear
        locally, and so do local items that were never published.
        """
        self.sync.fetch(self._require_remote(), self.pattern, prune=prune, cancel=cancel)

    def publish(self, prune: bool = PUSH_PRUNE, *, cancel: threading.Event | None = None) -> PushReport:
        """Push the namespace to the remote, propagating claims when pruning."""
        return self.sync.push(self._require_remote(), self.pattern, prune, cancel=cancel)
