"""
Path-addressed storage driver over a content-addressed backend.

Translates path operations into cache mirror and content index
operations, pulling from the backend on a cache miss.
"""

import logging
import os
import posixpath
from typing import BinaryIO, Callable, List, Optional

from .config import ReadPolicy, WritePolicy
from .context import StoreContext
from .errors import (
    ContentIndexError,
    InvalidOffsetError,
    UnsupportedMethodError,
)
from .model.entry import PathEntry
from .model.fileinfo import FileInfo
from .storage.writer import FileWriter, derive_collection
from .walk import walk_fallback

logger = logging.getLogger(__name__)

DRIVER_NAME = "ipfs"


class StoreDriver:
    """
    Store operations without concurrency regulation.

    The content index is authoritative for any path it knows; for
    every other path the cache mirror alone decides existence.
    """

    def __init__(self, context: StoreContext):
        """Initialize driver over a store context."""
        self.context = context
        self.mirror = context.mirror
        self.index = context.index
        self.backend = context.backend
        self.params = context.params

    def name(self) -> str:
        return DRIVER_NAME

    # ========== Whole-object access ==========

    def get_content(self, path: str) -> bytes:
        """Return the content stored at path."""
        with self.reader(path, 0) as stream:
            return stream.read()

    def put_content(self, path: str, content: bytes, collection: Optional[str] = None) -> None:
        """Store content at path, replacing anything already there."""
        with self.writer(path, append=False, collection=collection) as writer:
            try:
                writer.write(content)
            except Exception:
                writer.cancel()
                raise
            writer.commit()

    # ========== Read pipeline ==========

    def reader(self, path: str, offset: int = 0) -> BinaryIO:
        """
        Open path for reading, positioned at offset.

        An indexed path is pulled from the backend first: on every read
        under the always-refresh policy, only when missing locally under
        fetch-if-absent. A path with an open writer is never refreshed,
        since its local copy is the writer's buffer.

        Raises PathNotFoundError if path is neither indexed nor mirrored.
        Raises InvalidOffsetError if offset lies beyond the end of the file.
        """
        path = self.mirror.normalize(path)
        if offset < 0:
            raise InvalidOffsetError(path, offset)

        entry = self._lookup(path)
        if entry is not None:
            if not self.mirror.exists(path):
                self._pull(entry)
            elif self.params.read_policy is ReadPolicy.ALWAYS_REFRESH:
                if self.context.path_locks.is_held(path):
                    logger.debug("Not refreshing %s: open for writing", path)
                else:
                    self._pull(entry)

        handle = self.mirror.open_read(path)
        try:
            size = os.fstat(handle.fileno()).st_size
            if offset > size:
                raise InvalidOffsetError(path, offset)
            handle.seek(offset)
        except BaseException:
            handle.close()
            raise
        return handle

    def stat(self, path: str) -> FileInfo:
        """
        Return file info for path.

        An indexed path is pulled from the backend only if it is
        missing locally, whatever the read policy.
        """
        path = self.mirror.normalize(path)
        entry = self._lookup(path)
        if entry is not None and not self.mirror.exists(path):
            self._pull(entry)
        return self.mirror.stat(path)

    def list(self, path: str) -> List[str]:
        """
        List the immediate children of a mirrored directory.

        Only the mirror is consulted: a directory must have been
        materialized locally to be listable.
        """
        path = self.mirror.normalize(path)
        names = self.mirror.list_children(path)
        return sorted(posixpath.join(path, name) for name in names)

    # ========== Write pipeline ==========

    def writer(
        self,
        path: str,
        append: bool = False,
        collection: Optional[str] = None,
    ) -> FileWriter:
        """
        Open a write session for path.

        Args:
            path: logical path to write
            append: keep existing content and write after it
            collection: collection tag to index the path under; derived
                from the path when None
        """
        path = self.mirror.normalize(path)
        if collection is None:
            collection = derive_collection(path, self.params.repository_prefix)

        exclusive = self.params.write_policy is WritePolicy.EXCLUSIVE
        self.context.path_locks.acquire(path, exclusive)
        try:
            handle, base_size = self.mirror.open_write(path, append)
        except BaseException:
            self.context.path_locks.release(path)
            raise

        logger.debug("Opened writer for %s (append=%s, base size %d)", path, append, base_size)
        return FileWriter(self.context, path, handle, base_size, collection)

    # ========== Namespace operations ==========

    def move(self, source_path: str, dest_path: str) -> None:
        """
        Move an object, removing the original.

        The index entry follows the object so the source path stops
        resolving.
        """
        source_path = self.mirror.normalize(source_path)
        dest_path = self.mirror.normalize(dest_path)
        self.mirror.rename(source_path, dest_path)
        try:
            moved = self.index.rename(source_path, dest_path)
        except ContentIndexError:
            logger.error("Moved %s to %s but failed to re-key index", source_path, dest_path)
            raise
        logger.debug("Moved %s to %s (%d index entries)", source_path, dest_path, moved)

    def delete(self, path: str) -> None:
        """
        Recursively delete the mirrored copy of path.

        Index entries and backend pins are kept.
        """
        self.mirror.remove_recursive(path)
        logger.debug("Deleted %s from mirror", path)

    def url_for(self, path: str, options: Optional[dict] = None) -> str:
        raise UnsupportedMethodError("url_for")

    def walk(self, path: str, visitor: Callable[[FileInfo], None]) -> None:
        """Walk the tree below path, calling visitor for every entry."""
        walk_fallback(self, path, visitor)

    # ========== Internals ==========

    def _lookup(self, path: str) -> Optional[PathEntry]:
        """Index lookup where an index failure counts as a miss."""
        try:
            entry = self.index.lookup(path)
        except ContentIndexError as e:
            logger.warning("Index lookup failed for %s, serving mirror only: %s", path, e)
            return None
        logger.debug("Index %s for %s", "hit" if entry else "miss", path)
        return entry

    def _pull(self, entry: PathEntry) -> None:
        """Reconstruct the mirror copy of an indexed path from the backend."""
        full_path = self.mirror.ensure_parent_dirs(entry.path)
        self.backend.fetch(entry.content_hash, full_path)
        logger.debug("%s was pulled and written to %s", entry.path, full_path)
