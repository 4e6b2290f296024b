"""
Per-path registry of open writers.
"""

import threading
from typing import Dict

from ..errors import WriteConflictError


class PathLockTable:
    """
    Count of open writers per path.

    Every write session registers its path while it is open. Readers
    consult the table so they never replace a file being written.
    Acquisition never blocks: under the exclusive write policy a
    second writer for a held path is rejected with WriteConflictError.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._held: Dict[str, int] = {}

    def acquire(self, path: str, exclusive: bool = False) -> None:
        with self._lock:
            count = self._held.get(path, 0)
            if exclusive and count:
                raise WriteConflictError(path)
            self._held[path] = count + 1

    def release(self, path: str) -> None:
        with self._lock:
            count = self._held.get(path, 0) - 1
            if count > 0:
                self._held[path] = count
            else:
                self._held.pop(path, None)

    def is_held(self, path: str) -> bool:
        with self._lock:
            return path in self._held
