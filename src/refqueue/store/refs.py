"""Named, timestamped pointers into the object store.

Refs are git refs. Their timestamp is the modification time of the ref's
storage location on disk: the loose ref file when there is one, otherwise
the ``packed-refs`` file that holds it (refs arrive packed after a clone).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from refqueue.core.exceptions import CorruptState, NotFound, RegistryUnavailable
from refqueue.core.git import first_line
from refqueue.core.repository import Repository

from .ordering import order_refs

logger = logging.getLogger(__name__)

PACKED_REFS = "packed-refs"

# How long update-ref waits for a contended ref lock before failing.
REF_LOCK_CONFIG = {"core.filesRefLockTimeout": "1000", "core.packedRefsTimeout": "1000"}


@dataclass(frozen=True)
class Ref:
    """A ref as observed by one listing.

    ``packed`` is set when the ref exists only in ``packed-refs``; its
    ``created_at`` is then the mtime of that file.
    """

    name: str
    target: str
    created_at: datetime
    packed: bool = False

    def to_dict(self) -> dict[str, str | bool]:
        return {
            "name": self.name,
            "target": self.target,
            "created_at": self.created_at.isoformat(),
            "packed": self.packed,
        }


def _mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


def _require_ref_name(name: str) -> None:
    if not name.startswith("refs/") or name.endswith("/"):
        raise ValueError(f"Ref name must be a full name under refs/: {name!r}")


class RefRegistry:
    """Create, repoint, delete and list refs in a replica.

    Each mutation is a single ``git update-ref`` call and inherits git's
    per-ref locking; there is no multi-ref transaction and no in-process
    lock.
    """

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def list_refs(self, prefix: str, *, cancel: threading.Event | None = None) -> list[Ref]:
        """Return every ref whose name starts with ``prefix``, oldest first.

        The result is already in FIFO order (see :func:`order_refs`).

        Raises:
            CorruptState: a ref exists but no timestamp can be read for it.
            RegistryUnavailable: ``git show-ref`` failed.
        """
        result = self.repo.git("show-ref", cancel=cancel)
        if result.returncode == 1 and not result.stdout.strip():
            # show-ref exits 1 on a repository with no refs at all
            return []
        if not result.ok:
            raise RegistryUnavailable.from_result(
                f"git show-ref failed: {first_line(result.stderr)}", result
            )

        packed: set[str] | None = None
        refs: list[Ref] = []
        for line in result.text.splitlines():
            parts = line.split()
            if len(parts) != 2:
                raise CorruptState.from_result(f"Unparseable show-ref line: {line!r}", result)
            target, name = parts
            if not name.startswith(prefix):
                continue

            created_at = self._loose_timestamp(name)
            packed_only = False
            if created_at is None:
                if packed is None:
                    packed = self._packed_names()
                if name in packed:
                    created_at = _mtime(self.repo.git_dir / PACKED_REFS)
                    packed_only = True
            if created_at is None:
                if self.resolve(name) is None:
                    logger.debug("Ref %s vanished while listing; skipping", name)
                    continue
                raise CorruptState(
                    f"Ref {name} has no storage timestamp",
                    operation="show-ref",
                    arguments=(prefix,),
                )
            refs.append(Ref(name=name, target=target, created_at=created_at, packed=packed_only))
        return order_refs(refs)

    def get_ref(self, name: str) -> Ref | None:
        """Return the ref called ``name``, or None if it does not exist."""
        for ref in self.list_refs(name):
            if ref.name == name:
                return ref
        return None

    def resolve(self, name: str) -> str | None:
        """Return the hash ``name`` points at, or None if it does not exist."""
        result = self.repo.git("rev-parse", "--verify", "--quiet", name)
        if result.ok:
            return result.text.strip()
        if result.returncode == 1:
            return None
        raise RegistryUnavailable.from_result(
            f"git rev-parse failed for {name}: {first_line(result.stderr)}", result
        )

    def set_ref(self, name: str, object_id: str, *, cancel: threading.Event | None = None) -> None:
        """Create ``name`` or repoint it at ``object_id``."""
        _require_ref_name(name)
        result = self.repo.git(
            "update-ref", name, object_id, cancel=cancel, config=REF_LOCK_CONFIG
        )
        if not result.ok:
            raise RegistryUnavailable.from_result(
                f"git update-ref {name} {object_id} failed: {first_line(result.stderr)}", result
            )
        logger.debug("Set %s -> %s", name, object_id)

    def remove_ref(
        self,
        name: str,
        expected: str | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        """Delete ``name`` if it still points at ``expected``.

        Without ``expected`` the current target is resolved first. The delete
        itself is compare-and-delete, so of two racing callers exactly one
        succeeds.

        Raises:
            NotFound: the ref did not exist when the delete ran, or no longer
                pointed at ``expected``.
            RegistryUnavailable: git failed for any other reason.
        """
        _require_ref_name(name)
        if expected is None:
            expected = self.resolve(name)
            if expected is None:
                raise NotFound(f"Ref not found: {name}", operation="update-ref", arguments=("-d", name))

        result = self.repo.git(
            "update-ref", "-d", name, expected, cancel=cancel, config=REF_LOCK_CONFIG
        )
        if result.ok:
            logger.debug("Removed %s (was %s)", name, expected)
            return
        current = self.resolve(name)
        if current is None:
            raise NotFound.from_result(f"Ref not found: {name}", result)
        if current != expected:
            raise NotFound.from_result(f"Ref {name} no longer points at {expected}", result)
        raise RegistryUnavailable.from_result(
            f"git update-ref -d {name} failed: {first_line(result.stderr)}", result
        )

    def _loose_timestamp(self, name: str) -> datetime | None:
        try:
            return _mtime(self.repo.git_dir / name)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CorruptState(
                f"Cannot stat ref {name}: {exc}",
                operation="show-ref",
                arguments=(name,),
            ) from exc

    def _packed_names(self) -> set[str]:
        path = self.repo.git_dir / PACKED_REFS
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return set()
        names: set[str] = set()
        for line in content.splitlines():
            if not line or line.startswith(("#", "^")):
                continue
            parts = line.split()
            if len(parts) == 2:
                names.add(parts[1])
        return names
