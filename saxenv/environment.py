"""Module with the environment that cell coordination logic runs against."""

from __future__ import annotations

import queue
from typing import Any, List, Optional

from saxenv.args import Arguments
from saxenv.config import Config
from saxenv.election import ElectionGate, ReleaseSignal
from saxenv.filesystem import FileSystemService, RemoteStore
from saxenv.filesystem.service import PathLike
from saxenv.logger import log
from saxenv.root import resolve_root
import saxenv.rpc as rpc
import saxenv.transport as transport


class Environment:
    """
    Platform environment for a process taking part in a cell.

    Bundles file and directory access on local and object store paths, the metadata
    root, leader election and RPC transport behind one object. Build it once at startup
    with from_config() and pass it to whatever needs it.
    """

    def __init__(
        self,
        store: RemoteStore,
        config: Optional[Config] = None,
        gate: Optional[ElectionGate] = None,
    ):
        """Instantiate with an object store handle and optional configuration."""
        self.config = config or Config()
        self.store = store
        self.gate = gate or ElectionGate()

        self.fs = FileSystemService(store)

        self._root_flag: Optional[str] = None

    @staticmethod
    def from_config(config: Config) -> Environment:
        """Create the environment, connecting to the object store if possible."""
        return Environment(RemoteStore.connect(config.storage), config)

    def init(self, args: Arguments) -> None:
        """Apply parsed command-line arguments."""
        self._root_flag = args.sax_root

    def root_dir(self) -> str:
        """Return the directory where all cells store their metadata."""
        return resolve_root(self._root_flag)

    #
    # Files
    #

    def read_file(self, path: PathLike) -> bytes:
        return self.fs.read_file(path)

    def read_cached_file(self, path: PathLike) -> bytes:
        return self.fs.read_cached_file(path)

    def write_file(self, path: PathLike, data: bytes) -> None:
        self.fs.write_file(path, data)

    def write_file_atomically(self, path: PathLike, data: bytes) -> None:
        self.fs.write_file_atomically(path, data)

    def file_exists(self, path: PathLike) -> bool:
        return self.fs.file_exists(path)

    def watch(self, path: PathLike) -> "queue.Queue[bytes]":
        """
        Watch a file for content changes.

        Watching is not supported yet: the returned queue never receives anything.
        """
        log.debug(f"not watching {path} for changes")
        return queue.Queue()

    #
    # Directories
    #

    def create_dir(self, path: PathLike, acl: str = "") -> None:
        self.fs.create_dir(path, acl)

    def list_subdirs(self, path: PathLike) -> List[str]:
        return self.fs.list_subdirs(path)

    def dir_exists(self, path: PathLike) -> bool:
        return self.fs.dir_exists(path)

    #
    # Leader election
    #

    def lead(self, path: str) -> ReleaseSignal:
        """Block until leadership is acquired, see ElectionGate.lead()."""
        return self.gate.lead(path)

    #
    # Networking
    #

    @staticmethod
    def pick_unused_port() -> int:
        return transport.pick_unused_port()

    def dial(self, target: str, service_type: type) -> rpc.Client:
        return transport.connect(target, service_type, self.config.rpc.timeout_ms)

    def new_server(self, service: Any) -> rpc.Server:
        return transport.new_server(service, self.config.rpc.workers)

    @staticmethod
    def required_acl_name_prefix() -> str:
        return transport.required_acl_name_prefix()
