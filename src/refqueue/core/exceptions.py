"""Exception hierarchy for refqueue storage and sync operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .git import GitResult


class RefQueueError(Exception):
    """Base exception for refqueue errors.

    Carries the failed operation, its arguments and whatever the git process
    wrote, so callers can log a complete diagnostic without re-running it.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        arguments: Sequence[str] = (),
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.operation = operation
        self.arguments = tuple(arguments)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)

    @classmethod
    def from_result(cls, message: str, result: "GitResult") -> "RefQueueError":
        """Build an error from a failed git invocation."""
        return cls(
            message,
            operation=result.operation,
            arguments=result.args,
            returncode=result.returncode,
            stdout=result.text,
            stderr=result.stderr,
        )

    def __str__(self) -> str:
        message = super().__str__()
        detail = (self.stderr or self.stdout).strip()
        if detail:
            return f"{message}\n{detail}"
        return message


class StoreUnavailable(RefQueueError):
    """Object store process could not be started or exited non-zero."""


class RegistryUnavailable(RefQueueError):
    """Ref registry process could not be started or exited non-zero."""


class RemoteSyncError(RefQueueError):
    """Bootstrap, fetch or push against a remote failed."""


class IOFailure(RefQueueError):
    """Byte stream to or from the git process failed."""


class NotFound(RefQueueError):
    """Referenced object hash or ref does not exist."""


class CorruptState(RefQueueError):
    """A listed ref has no retrievable timestamp."""


class OperationCancelled(RefQueueError):
    """Caller cancelled the operation or its timeout expired."""


class ConfigError(RefQueueError):
    """Configuration file or value is invalid."""
