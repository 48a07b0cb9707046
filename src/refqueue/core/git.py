"""Git process invocation and tool detection.

Every git call made by refqueue goes through :func:`run_git`. It blocks until
the process exits, but polls a caller-supplied cancel event (and an optional
timeout) while waiting, terminating the process when either fires.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Sequence

from .exceptions import IOFailure, OperationCancelled

logger = logging.getLogger(__name__)

# Seconds between cancel checks while a git process is running.
POLL_INTERVAL = 0.05

GIT_NOT_FOUND = 127
GIT_NOT_EXECUTABLE = 126


@dataclass
class GitResult:
    """Normalized outcome of one git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: bytes
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def text(self) -> str:
        """Stdout decoded as UTF-8 text."""
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def command(self) -> str:
        return shlex.join(["git", *self.args])

    @property
    def operation(self) -> str | None:
        return _subcommand(self.args)


def _subcommand(args: Sequence[str]) -> str | None:
    """The git subcommand, skipping leading ``-C path`` and ``-c key=value``."""
    rest = tuple(args)
    while rest[:1] in (("-C",), ("-c",)):
        rest = rest[2:]
    return rest[0] if rest else None


def first_line(text: str) -> str:
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return ""


def _stop(process: subprocess.Popen) -> None:
    """Terminate a running git process and reap it."""
    process.terminate()
    try:
        process.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        process.kill()
        process.communicate()


def run_git(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    input: bytes | None = None,
    cancel: threading.Event | None = None,
    timeout: float | None = None,
) -> GitResult:
    """Run ``git <args>`` and capture its output.

    A missing or non-executable git binary is reported as a result with
    return code 127/126 rather than raised, so each component can map it to
    its own unavailability error.

    Raises:
        OperationCancelled: ``cancel`` was set or ``timeout`` expired before
            the process finished. The process is terminated first.
        IOFailure: writing to or reading from the process failed.
    """
    arguments = tuple(args)
    command = ["git", *arguments]
    operation = _subcommand(arguments)
    logger.debug("Running %s (cwd=%s)", shlex.join(command), cwd)

    if cancel is not None and cancel.is_set():
        raise OperationCancelled(
            f"Cancelled before running {shlex.join(command)}",
            operation=operation,
            arguments=arguments,
        )

    try:
        process = subprocess.Popen(
            command,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError:
        return GitResult(arguments, GIT_NOT_FOUND, b"", "git executable not found on PATH")
    except PermissionError as exc:
        return GitResult(arguments, GIT_NOT_EXECUTABLE, b"", f"git is not executable: {exc}")

    deadline = None if timeout is None else time.monotonic() + timeout
    pending_input = input
    while True:
        try:
            stdout, stderr = process.communicate(pending_input, timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            pending_input = None
        except OSError as exc:
            _stop(process)
            raise IOFailure(
                f"Stream to {shlex.join(command)} failed: {exc}",
                operation=operation,
                arguments=arguments,
            ) from exc

        if cancel is not None and cancel.is_set():
            _stop(process)
            raise OperationCancelled(
                f"Cancelled {shlex.join(command)}",
                operation=operation,
                arguments=arguments,
            )
        if deadline is not None and time.monotonic() >= deadline:
            _stop(process)
            raise OperationCancelled(
                f"Timed out after {timeout}s: {shlex.join(command)}",
                operation=operation,
                arguments=arguments,
            )

    result = GitResult(
        args=arguments,
        returncode=process.returncode,
        stdout=stdout or b"",
        stderr=(stderr or b"").decode("utf-8", errors="replace"),
    )
    if not result.ok:
        logger.debug("%s exited %d: %s", result.command, result.returncode, first_line(result.stderr))
    return result


# Seconds allowed for ``git --version`` when probing the installation.
DETECTION_TIMEOUT = 5

_VERSION_RE = re.compile(r"git version\s+(\d+\.\d+\.\d+)")


@lru_cache(maxsize=1)
def get_git_version() -> str | None:
    """Installed git version (e.g. ``"2.43.0"``), or None when git is unusable.

    Returns ``"unknown"`` for a working git whose version string has no
    dotted triple.
    """
    try:
        result = run_git(["--version"], timeout=DETECTION_TIMEOUT)
    except OperationCancelled:
        logger.warning("git --version did not answer within %ss", DETECTION_TIMEOUT)
        return None
    if not result.ok:
        return None
    match = _VERSION_RE.search(result.text)
    return match.group(1) if match else "unknown"


def is_git_available() -> bool:
    return get_git_version() is not None


def _clear_detection_cache() -> None:
    get_git_version.cache_clear()
