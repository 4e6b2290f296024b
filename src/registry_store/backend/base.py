"""
Content-addressable backend interface.

The store reaches its backend only through publish, fetch and
list_pinned. Backends add no retries; callers own retry policy.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Dict, Iterable

# Pin kind of objects added whole; the only kind the store reports on.
PIN_RECURSIVE = "recursive"


class ContentBackend(ABC):
    """Storage service where objects are addressed by content hash."""

    name = "abstract"

    @abstractmethod
    def publish(self, stream: BinaryIO) -> str:
        """
        Store the full contents of a stream and return its content hash.

        Raises BackendUnavailableError on transport failure.
        """

    @abstractmethod
    def fetch(self, content_hash: str, destination: str | Path) -> None:
        """
        Write the complete object for a hash to destination.

        Existing content at destination is overwritten.
        Raises BackendNotFoundError if no object exists for the hash,
        BackendUnavailableError on transport failure.
        """

    @abstractmethod
    def list_pinned(self) -> Dict[str, str]:
        """Return {content hash: pin kind} for every pinned object."""

    def close(self) -> None:
        """Release transport resources."""


def write_atomic(destination: str | Path, chunks: Iterable[bytes]) -> int:
    """
    Write chunks to destination atomically.

    Uses temp file + rename in the destination directory so readers
    never observe a partially fetched object.

    Returns number of bytes written.
    """
    destination = Path(destination)
    fd = None
    temp_path = None
    total = 0
    try:
        fd, temp_path = tempfile.mkstemp(
            dir=str(destination.parent),
            prefix='.fetch_',
        )
        with os.fdopen(fd, 'wb') as sink:
            fd = None  # owned by sink now
            for chunk in chunks:
                sink.write(chunk)
                total += len(chunk)
            sink.flush()
            os.fsync(sink.fileno())

        os.replace(temp_path, destination)
        temp_path = None
        return total
    finally:
        if fd is not None:
            os.close(fd)
        if temp_path is not None and os.path.exists(temp_path):
            os.unlink(temp_path)
