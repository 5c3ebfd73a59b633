"""Data structures and path helpers used by multiple file system components."""

from __future__ import annotations

from dataclasses import dataclass
from enum import auto, Enum
import posixpath
from typing import Union

from saxenv.constants import REMOTE_PATH_PREFIX, REMOTE_URL_PREFIX
from saxenv.errors import InvalidArgumentError


class Backend(Enum):
    """Storage backend that a path is served by."""

    LOCAL = auto()
    REMOTE = auto()


def is_remote(path: str) -> bool:
    """Check if a path in canonical form refers to the object store."""
    return path.startswith(REMOTE_PATH_PREFIX)


def to_internal(url: str) -> str:
    """
    Convert a user-facing object store URL into its canonical path form.

    For example "s3://bucket/dir" becomes "/s3/bucket/dir". Anything else, including
    paths that are already canonical, is returned unchanged.
    """
    if url.startswith(REMOTE_URL_PREFIX):
        return REMOTE_PATH_PREFIX + url[len(REMOTE_URL_PREFIX) :]
    else:
        return url


@dataclass(frozen=True)
class Path:
    """
    A canonical path tagged with the backend that serves it.

    The tag is derived once when a path enters the environment, so individual
    operations never have to sniff prefixes again.
    """

    value: str
    backend: Backend

    @staticmethod
    def parse(path: Union[str, Path]) -> Path:
        """
        Classify a canonical or local path string.

        Object store URLs must be converted with to_internal() first rather than being
        mistaken for a relative local path.
        """
        if isinstance(path, Path):
            return path

        if path.startswith(REMOTE_URL_PREFIX):
            raise InvalidArgumentError(
                f"{path} is an object store URL, expected {to_internal(path)}"
            )

        backend = Backend.REMOTE if is_remote(path) else Backend.LOCAL
        return Path(path, backend)

    @property
    def remote(self) -> bool:
        """Check if the path is served by the object store."""
        return self.backend is Backend.REMOTE

    def join(self, *parts: str) -> Path:
        """Append path components, keeping the backend."""
        return Path(posixpath.join(self.value, *parts), self.backend)

    def __str__(self) -> str:
        return self.value
