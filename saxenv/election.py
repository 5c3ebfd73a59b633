"""
In-process leader election.

There is no cross-process, file lock based election. ElectionGate only gives mutual
exclusion between threads of a single process, which is enough for running several
cell members inside one test process but coordinates nothing across machines.
"""

import threading
from typing import Any, Optional

from saxenv.logger import log


class ReleaseSignal:
    """
    Handle returned to the holder of an ElectionGate.

    Closing it hands the gate back. It can also be used as a context manager.
    """

    def __init__(self) -> None:
        self._closed = threading.Event()

    def close(self) -> None:
        """Release leadership. Closing more than once has no further effect."""
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the signal is closed, or the timeout expires."""
        return self._closed.wait(timeout)

    def __enter__(self) -> "ReleaseSignal":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ElectionGate:
    """
    Process-wide mutual exclusion used to approximate leader election.

    lead() blocks until nobody else holds the gate. The gate stays held until the
    returned signal is closed; a holder that never closes it blocks all later callers
    for the rest of the process lifetime, since there are no leases.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def lead(self, path: str) -> ReleaseSignal:
        """
        Acquire leadership and return the signal that releases it.

        The path is accepted for interface compatibility but ignored: all callers of
        the same gate contend for one lock regardless of path.
        """
        self._lock.acquire()
        log.debug(f"acquired leadership (requested for {path})")

        signal = ReleaseSignal()

        t = threading.Thread(target=self._release_on_close, args=(signal,), daemon=True)
        t.start()

        return signal

    @property
    def held(self) -> bool:
        """Check if some caller currently holds the gate."""
        return self._lock.locked()

    def _release_on_close(self, signal: ReleaseSignal) -> None:
        signal.wait()
        self._lock.release()
        log.debug("released leadership")
