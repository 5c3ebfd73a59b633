"""
Error conditions raised by the environment.

Callers branch on these classes rather than on messages. Where a builtin exception
fits, it is a base as well so code that only knows about ValueError or
NotImplementedError keeps working.
"""

from typing import Optional


class EnvError(Exception):
    """Base class of all errors raised by saxenv."""


class InvalidArgumentError(EnvError, ValueError):
    """A path or argument is malformed, e.g. a remote path without a bucket."""


class FailedPreconditionError(EnvError):
    """
    The system is not in a state required for the operation.

    Raised when no object store client could be created at startup, and when a path
    has the wrong type (a directory where a file was expected or vice versa).
    """


class UnimplementedError(EnvError, NotImplementedError):
    """The requested capability is deliberately not supported, like ACLs."""


class StorageIOError(EnvError):
    """A backend I/O failure, annotated with the failing operation and path."""

    def __init__(self, operation: str, path: str, cause: Optional[str] = None):
        """Construct with the failing operation, the path and a cause description."""
        super().__init__(operation, path, cause)

        self.operation = operation
        self.path = path
        self.cause = cause

    def __str__(self) -> str:
        """Describe the failure, e.g. "read_file /s3/bucket/key: access denied"."""
        if self.cause:
            return f"{self.operation} {self.path}: {self.cause}"
        else:
            return f"{self.operation} {self.path}"


# Exception types that survive an RPC round trip with their identity intact.
EXPORTED_ERRORS = (
    EnvError,
    InvalidArgumentError,
    FailedPreconditionError,
    UnimplementedError,
    StorageIOError,
)
