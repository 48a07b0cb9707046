"""Mirror refs and objects between a replica and a remote.

Fetch and push move whole ref patterns at a time. Ref updates are forced:
queue refs point at blobs, and repointing a blob ref is never a
fast-forward.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from refqueue.core.exceptions import RemoteSyncError
from refqueue.core.git import first_line, run_git
from refqueue.core.repository import Repository

logger = logging.getLogger(__name__)

PUSH_PRUNE = True
PUSH_NO_PRUNE = False


def ref_pattern(namespace: str) -> str:
    """Turn a namespace prefix into a wildcard pattern (``refs/q/`` -> ``refs/q/*``)."""
    if namespace.endswith("/"):
        return f"{namespace}*"
    return namespace


def _refspec(pattern: str) -> str:
    return f"+{pattern}:{pattern}"


@dataclass(frozen=True)
class PushStatus:
    """One ``git push --porcelain`` status line."""

    flag: str
    source: str
    destination: str
    summary: str

    @property
    def rejected(self) -> bool:
        return self.flag == "!"

    @property
    def is_deletion(self) -> bool:
        return not self.source


@dataclass
class PushReport:
    """Outcome of a push: what changed remotely and which prunes failed."""

    remote: str
    pattern: str
    statuses: list[PushStatus] = field(default_factory=list)

    @property
    def updated(self) -> list[str]:
        return [s.destination for s in self.statuses if s.flag in ("*", "+", " ") and not s.is_deletion]

    @property
    def deleted(self) -> list[str]:
        return [s.destination for s in self.statuses if s.flag == "-"]

    @property
    def rejected_deletions(self) -> list[PushStatus]:
        return [s for s in self.statuses if s.rejected and s.is_deletion]

    @property
    def rejected_updates(self) -> list[PushStatus]:
        return [s for s in self.statuses if s.rejected and not s.is_deletion]


def parse_push_porcelain(output: str) -> list[PushStatus]:
    """Parse the ref status lines of ``git push --porcelain`` output."""
    statuses: list[PushStatus] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) != 3 or len(parts[0]) != 1:
            # "To <url>" and "Done" lines
            continue
        flag, refs, summary = parts
        source, _, destination = refs.partition(":")
        statuses.append(
            PushStatus(flag=flag, source=source, destination=destination, summary=summary)
        )
    return statuses


class RemoteSynchronizer:
    """Bootstrap, fetch and push a replica against a remote location.

    Every call runs a single git process and either succeeds or raises one
    :class:`RemoteSyncError`. Cancelling (via ``cancel``) terminates git
    before it commits any local ref update.
    """

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def bootstrap(self, remote: str, *, cancel: threading.Event | None = None) -> None:
        """Create the replica as a shallow bare clone of ``remote``."""
        self.repo.path.parent.mkdir(parents=True, exist_ok=True)
        result = run_git(
            ["clone", "--quiet", "--depth=1", "--bare", "--no-checkout", remote, str(self.repo.path)],
            cwd=self.repo.path.parent,
            cancel=cancel,
        )
        if not result.ok:
            raise RemoteSyncError.from_result(
                f"git clone {remote!r} -> {str(self.repo.path)!r} failed: {first_line(result.stderr)}",
                result,
            )
        logger.info("Bootstrapped replica %s from %s", self.repo.path, remote)

    def fetch(
        self,
        remote: str,
        pattern: str,
        *,
        prune: bool = False,
        cancel: threading.Event | None = None,
    ) -> None:
        """Pull refs matching ``pattern`` from ``remote``.

        Local refs outside ``pattern`` are never touched. Local ref updates
        are applied atomically.
        """
        args = ["fetch", "--quiet", "--atomic", "--no-tags"]
        if prune:
            args.append("--prune")
        args += [remote, _refspec(pattern)]
        result = self.repo.git(*args, cancel=cancel)
        if not result.ok:
            raise RemoteSyncError.from_result(
                f"git fetch {remote!r} {pattern!r} failed: {first_line(result.stderr)}", result
            )
        logger.debug("Fetched %s from %s", pattern, remote)

    def push(
        self,
        remote: str,
        pattern: str,
        prune: bool = PUSH_NO_PRUNE,
        *,
        cancel: threading.Event | None = None,
    ) -> PushReport:
        """Push refs matching ``pattern`` to ``remote``.

        With ``prune`` remote refs matching the pattern that no longer exist
        locally are deleted. Rejected ref updates raise; rejected deletions
        are reported in :attr:`PushReport.rejected_deletions` and logged.
        """
        args = ["push", "--porcelain"]
        if prune:
            args.append("--prune")
        args += [remote, _refspec(pattern)]
        result = self.repo.git(*args, cancel=cancel)

        report = PushReport(remote=remote, pattern=pattern, statuses=parse_push_porcelain(result.text))
        if result.ok:
            logger.debug(
                "Pushed %s to %s: %d updated, %d deleted",
                pattern,
                remote,
                len(report.updated),
                len(report.deleted),
            )
            return report

        if not report.statuses or report.rejected_updates:
            raise RemoteSyncError.from_result(
                f"git push {remote!r} {pattern!r} failed: {first_line(result.stderr)}", result
            )

        for status in report.rejected_deletions:
            logger.warning("Remote %s refused to prune %s: %s", remote, status.destination, status.summary)
        return report
