"""Content-addressed payload storage backed by git blobs."""

from __future__ import annotations

import logging
import re
import threading

from refqueue.core.exceptions import IOFailure, NotFound, StoreUnavailable
from refqueue.core.git import GitResult, first_line
from refqueue.core.repository import Repository

logger = logging.getLogger(__name__)

_OBJECT_ID_RE = re.compile(r"^[0-9a-f]{4,64}$")


def _check_stream(result: GitResult, operation: str) -> None:
    """A git process killed by a signal broke the payload stream mid-way."""
    if result.returncode < 0:
        raise IOFailure.from_result(
            f"git {operation} was killed by signal {-result.returncode} while streaming",
            result,
        )


class ObjectStore:
    """Write and read opaque payloads by content hash.

    Objects are immutable and deduplicated by git: writing the same bytes
    twice yields the same hash and stores one blob. Nothing here deletes
    objects; unreferenced blobs are left for ``git gc``.
    """

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def write(self, payload: bytes, *, cancel: threading.Event | None = None) -> str:
        """Persist ``payload`` and return its content hash.

        Raises:
            IOFailure: the byte stream to git broke, or git was killed mid-write.
            StoreUnavailable: git could not be started or exited non-zero.
        """
        result = self.repo.git("hash-object", "-w", "--stdin", input=payload, cancel=cancel)
        _check_stream(result, "hash-object")
        if not result.ok:
            raise StoreUnavailable.from_result(
                f"git hash-object failed: {first_line(result.stderr)}", result
            )
        object_id = result.text.strip()
        logger.debug("Stored %d bytes as %s", len(payload), object_id)
        return object_id

    def read(self, object_id: str, *, cancel: threading.Event | None = None) -> bytes:
        """Return the exact bytes stored under ``object_id``.

        Raises:
            NotFound: no blob with that hash exists in the replica.
        """
        if not _OBJECT_ID_RE.match(object_id):
            raise NotFound(f"Invalid object hash: {object_id!r}", operation="cat-file", arguments=(object_id,))

        result = self.repo.git("cat-file", "blob", object_id, cancel=cancel)
        _check_stream(result, "cat-file")
        if result.ok:
            return result.stdout

        stderr = result.stderr.lower()
        if "not a valid object name" in stderr or "bad file" in stderr:
            raise NotFound.from_result(f"Object not found: {object_id}", result)
        raise StoreUnavailable.from_result(
            f"git cat-file failed for {object_id}: {first_line(result.stderr)}", result
        )

    def exists(self, object_id: str) -> bool:
        if not _OBJECT_ID_RE.match(object_id):
            return False
        return self.repo.git("cat-file", "-e", object_id).ok
