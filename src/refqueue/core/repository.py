"""Handle on a local git replica holding queue objects and refs."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from .exceptions import RegistryUnavailable
from .git import GitResult, first_line, run_git

logger = logging.getLogger(__name__)


class Repository:
    """A local replica: a (usually bare) git repository at ``path``.

    The object store, ref registry and remote synchronizer all operate on a
    Repository; none of them holds state of its own beyond it.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser().resolve()
        self._git_dir: Path | None = None

    def __repr__(self) -> str:
        return f"Repository({str(self.path)!r})"

    def git(
        self,
        *args: str,
        input: bytes | None = None,
        cancel: threading.Event | None = None,
        timeout: float | None = None,
        config: dict[str, str] | None = None,
    ) -> GitResult:
        """Run a git command against this replica.

        ``config`` entries are passed as ``-c key=value`` for this call only.
        """
        overrides: list[str] = []
        for key, value in (config or {}).items():
            overrides += ["-c", f"{key}={value}"]
        return run_git(
            ["-C", str(self.path), *overrides, *args],
            input=input,
            cancel=cancel,
            timeout=timeout,
        )

    def is_repo(self) -> bool:
        """True when ``path`` itself is a repository, not just inside one."""
        if not self.path.is_dir():
            return False
        result = self.git("rev-parse", "--absolute-git-dir")
        if not result.ok:
            return False
        git_dir = Path(result.text.strip()).resolve()
        return git_dir in (self.path, self.path / ".git")

    @property
    def git_dir(self) -> Path:
        """Absolute git directory; the replica path itself for bare repos."""
        if self._git_dir is None:
            result = self.git("rev-parse", "--absolute-git-dir")
            if not result.ok:
                raise RegistryUnavailable.from_result(f"Not a git repository: {self.path}", result)
            self._git_dir = Path(result.text.strip())
        return self._git_dir

    def init(self, bare: bool = True) -> None:
        """Create an empty repository at ``path`` (no-op if one exists)."""
        if self.is_repo():
            return
        self.path.mkdir(parents=True, exist_ok=True)
        args = ["init", "--quiet"]
        if bare:
            args.append("--bare")
        result = self.git(*args)
        if not result.ok:
            raise RegistryUnavailable.from_result(
                f"git init failed in {self.path}: {first_line(result.stderr)}", result
            )
        logger.info("Initialized %s replica at %s", "bare" if bare else "working", self.path)
