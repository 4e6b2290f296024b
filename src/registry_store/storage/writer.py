"""
Write sessions for the path-addressed store.

A session buffers bytes in the cache mirror; commit makes them durable
locally and publishes them to the backend in one step.
"""

import logging
import os
from enum import Enum
from typing import BinaryIO, Optional

from ..errors import StateViolationError, StorageError

logger = logging.getLogger(__name__)


class WriterState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"
    CANCELLED = "cancelled"
    CLOSED = "closed"


def derive_collection(path: str, repository_prefix: str) -> str:
    """
    Derive a collection tag (image name) from a logical path.

    Strips the repository prefix when the path lies under it and
    returns the first remaining path segment, or "" if none remains.
    """
    remainder = path
    prefix = (repository_prefix or "").rstrip('/')
    if prefix and (path == prefix or path.startswith(prefix + '/')):
        remainder = path[len(prefix):]
    segments = [segment for segment in remainder.split('/') if segment]
    return segments[0] if segments else ""


class FileWriter:
    """
    Write session owning one buffer file in the cache mirror.

    States:
        open -> committed | cancelled
        open | committed | cancelled -> closed

    Commit flushes, syncs, publishes to the backend and records the
    resulting hash in the content index. Close only releases
    resources and may be called any number of times.
    """

    def __init__(
        self,
        context,
        path: str,
        handle: BinaryIO,
        base_size: int,
        collection: str,
    ):
        """
        Create a session over an already opened buffer handle.

        Args:
            context: StoreContext providing mirror, index and backend
            path: logical path being written
            handle: writable binary handle positioned at end of data
            base_size: size of the file when the session was opened
            collection: collection tag recorded in the index on commit

        The path must already be registered in the context's path lock
        table; the session releases it on close or cancel.
        """
        self.context = context
        self.path = path
        self.collection = collection
        self._handle = handle
        self._size = base_size
        self._holds_lock = True
        self.state = WriterState.OPEN
        self.content_hash: Optional[str] = None

    @property
    def size(self) -> int:
        """Bytes in the buffer, including content present before an append."""
        return self._size

    def write(self, data: bytes) -> int:
        """Append bytes to the buffer."""
        if self.state is not WriterState.OPEN:
            raise StateViolationError("write", self.state.value)
        try:
            n = self._handle.write(data)
        except OSError as e:
            raise StorageError("write", self.path, e)
        self._size += n
        return n

    def commit(self) -> str:
        """
        Make the buffer durable and publish it.

        The session is committed once the local sync succeeds. A publish
        or index failure is raised afterwards; the file then stays in the
        mirror without an index entry.

        Returns the content hash recorded for the path.
        """
        if self.state is not WriterState.OPEN:
            raise StateViolationError("commit", self.state.value)

        try:
            self._handle.flush()
            os.fsync(self._handle.fileno())
            self._handle.close()
        except OSError as e:
            raise StorageError("commit", self.path, e)
        self.state = WriterState.COMMITTED

        with self.context.mirror.open_read(self.path) as committed:
            try:
                content_hash = self.context.backend.publish(committed)
            except Exception:
                logger.error("Failed to publish %s", self.path)
                raise

        try:
            self.context.index.upsert(self.path, content_hash, self.collection)
        except Exception:
            logger.error("Failed to index %s -> %s", self.path, content_hash)
            raise

        self.content_hash = content_hash
        logger.debug("Committed %s as %s (%d bytes)", self.path, content_hash, self._size)
        return content_hash

    def close(self) -> None:
        """
        Release the buffer handle and the path registration.

        Buffered bytes of an uncommitted session are flushed so a later
        append writer can resume the upload. Safe to call repeatedly.
        """
        if self.state is WriterState.CLOSED:
            return
        try:
            if not self._handle.closed:
                self._handle.close()
        except OSError as e:
            raise StorageError("close", self.path, e)
        finally:
            self._release_lock()
            self.state = WriterState.CLOSED

    def cancel(self) -> None:
        """Abandon the session and delete its buffer file."""
        if self.state is WriterState.CLOSED:
            raise StateViolationError("cancel", self.state.value)
        try:
            if not self._handle.closed:
                self._handle.close()
            os.unlink(self.context.mirror.full_path(self.path))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError("cancel", self.path, e)
        finally:
            self._release_lock()
            self.state = WriterState.CANCELLED

    def _release_lock(self) -> None:
        if self._holds_lock:
            self.context.path_locks.release(self.path)
            self._holds_lock = False

    def __enter__(self) -> 'FileWriter':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"FileWriter(path={self.path}, size={self._size}, state={self.state.value})"
