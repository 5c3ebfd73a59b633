"""Module with the file and directory operations on local and remote paths."""

import os
import random
import stat
import time
from typing import List, Union

from saxenv.constants import DIR_MODE, FILE_MODE, METADATA_FILE
from saxenv.errors import FailedPreconditionError, UnimplementedError
from saxenv.filesystem.common import Path
from saxenv.filesystem.remote import RemoteStore

PathLike = Union[str, Path]


class FileSystemService:
    """
    File and directory operations that work the same on local and remote paths.

    Remote paths ("/s3/bucket/key") are served by the object store, everything else by
    the local file system. The service holds no mutable state, so it can be called
    from any number of threads and exposed as an RPC service as is.

    The object store has no directories. A directory there exists if and only if it
    contains a METADATA marker object. Creating or deleting that marker is not atomic
    with respect to other processes doing the same, and nothing here tries to make it
    so.
    """

    def __init__(self, store: RemoteStore):
        """Instantiate with the object store handle used for all remote paths."""
        self._store = store

    #
    # File operations
    #

    def read_file(self, path: PathLike) -> bytes:
        p = Path.parse(path)

        if p.remote:
            return self._store.read_object(p.value)

        with open(p.value, "rb") as f:
            return f.read()

    def read_cached_file(self, path: PathLike) -> bytes:
        """
        Read a file that is expected to be read repeatedly.

        There is no cache yet, so this is the same as read_file().
        """
        return self.read_file(path)

    def write_file(self, path: PathLike, data: bytes) -> None:
        p = Path.parse(path)

        if p.remote:
            self._store.write_object(p.value, data)
        else:
            self._write_local(p.value, data)

    def write_file_atomically(self, path: PathLike, data: bytes) -> None:
        """
        Write a file such that readers see either the old or the new contents.

        Locally the data is written to a temporary file next to the target, which is
        then renamed over it. The temporary name includes the time and a random number
        so concurrent writers don't clobber each other's temporary files. The last
        rename wins.

        Object store writes only become visible once complete, so those are written
        directly.
        """
        p = Path.parse(path)

        if p.remote:
            self._store.write_object(p.value, data)
            return

        temp_path = f"{p.value}.{time.time_ns()}.{random.getrandbits(64):016x}"

        try:
            self._write_local(temp_path, data)
            os.replace(temp_path, p.value)
        except BaseException:
            if os.path.lexists(temp_path):
                os.unlink(temp_path)
            raise

    def file_exists(self, path: PathLike) -> bool:
        p = Path.parse(path)

        if p.remote:
            return self._store.object_exists(p.value)

        try:
            st = os.stat(p.value)
        except FileNotFoundError:
            return False

        if stat.S_ISDIR(st.st_mode):
            raise FailedPreconditionError(f"{p} is a directory, not a file")

        return True

    #
    # Directory operations
    #

    def create_dir(self, path: PathLike, acl: str = "") -> None:
        """Create a directory and any missing parents. ACLs are not supported."""
        if acl:
            raise UnimplementedError(f"create_dir with ACL {acl} is not supported")

        p = Path.parse(path)

        if p.remote:
            self._store.write_object(p.join(METADATA_FILE).value, b"")
        else:
            os.makedirs(p.value, DIR_MODE, exist_ok=True)

    def list_subdirs(self, path: PathLike) -> List[str]:
        """List the names of the entries directly inside a directory."""
        p = Path.parse(path)

        if p.remote:
            return self._store.list_prefixes(p.value)

        return os.listdir(p.value)

    def dir_exists(self, path: PathLike) -> bool:
        p = Path.parse(path)

        if p.remote:
            return self._store.object_exists(p.join(METADATA_FILE).value)

        try:
            st = os.stat(p.value)
        except FileNotFoundError:
            return False

        if not stat.S_ISDIR(st.st_mode):
            raise FailedPreconditionError(f"{p} is a file, not a directory")

        return True

    @staticmethod
    def _write_local(path: str, data: bytes) -> None:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)

        with open(fd, "wb") as f:
            f.write(data)
