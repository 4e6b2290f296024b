"""
Durable mapping from logical paths to content hashes.

Backed by a single SQLite database stored next to the mirrored files.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional

from ..errors import ContentIndexError
from ..model.entry import PathEntry

logger = logging.getLogger(__name__)

INDEX_FILENAME = "pindb"

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS pinlist "
    "(hash TEXT, time TEXT, filename TEXT PRIMARY KEY, image TEXT)"
)
_HASH_INDEX = "CREATE INDEX IF NOT EXISTS pinlist_hash ON pinlist(hash)"

# On conflict the image column keeps the value from the first publication.
_UPSERT = (
    "INSERT INTO pinlist (hash, time, filename, image) "
    "VALUES (?, datetime('now'), ?, ?) "
    "ON CONFLICT(filename) DO UPDATE SET hash = excluded.hash, time = datetime('now')"
)


class ContentIndex:
    """
    Thread-safe path -> (hash, time, collection) index.

    One connection is shared by all callers and guarded by a lock;
    every statement is committed on its own.
    """

    def __init__(self, path: str | Path):
        """
        Open (creating if needed) the index database.

        Raises ContentIndexError if the database cannot be opened.
        """
        self.path = Path(path)
        self._lock = threading.RLock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(self.path), check_same_thread=False, timeout=30.0)
            self.conn.row_factory = sqlite3.Row
            with self.conn:
                self.conn.execute(_SCHEMA)
                self.conn.execute(_HASH_INDEX)
        except (OSError, sqlite3.Error) as e:
            raise ContentIndexError("open", e)
        logger.debug("Opened content index at %s", self.path)

    def lookup(self, path: str) -> Optional[PathEntry]:
        """
        Find the entry for a logical path.

        Returns None if the path has never been published.
        """
        return self._query_one(
            "lookup",
            "SELECT hash, time, filename, image FROM pinlist WHERE filename = ?",
            (path,),
        )

    def lookup_by_hash(self, content_hash: str) -> Optional[PathEntry]:
        """
        Find an entry that resolves to a content hash.

        Several paths may share a hash; the first one found is returned.
        """
        return self._query_one(
            "lookup_by_hash",
            "SELECT hash, time, filename, image FROM pinlist WHERE hash = ? LIMIT 1",
            (content_hash,),
        )

    def upsert(self, path: str, content_hash: str, collection: str) -> None:
        """
        Record that a path now resolves to a content hash.

        Replaces hash and time of an existing entry; the collection of an
        existing entry is preserved.
        """
        if not content_hash:
            raise ContentIndexError("upsert", ValueError(f"empty hash for {path}"))
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(_UPSERT, (content_hash, path, collection))
            except sqlite3.Error as e:
                logger.error("Failed to upsert %s -> %s: %s", path, content_hash, e)
                raise ContentIndexError("upsert", e) from e

    def rename(self, src: str, dst: str) -> int:
        """
        Re-key the entry for src, and every entry below src/, to dst.

        Entries already at the destination are replaced.
        Returns number of entries moved.
        """
        if src == dst:
            return 0
        src_prefix = src.rstrip('/') + '/'
        dst_prefix = dst.rstrip('/') + '/'
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(
                        "DELETE FROM pinlist WHERE filename = ? OR substr(filename, 1, ?) = ?",
                        (dst, len(dst_prefix), dst_prefix),
                    )
                    cursor = self.conn.execute(
                        "UPDATE pinlist SET filename = ? || substr(filename, ?) "
                        "WHERE filename = ? OR substr(filename, 1, ?) = ?",
                        (dst, len(src) + 1, src, len(src_prefix), src_prefix),
                    )
                    return cursor.rowcount
            except sqlite3.Error as e:
                raise ContentIndexError("rename", e) from e

    def entries(self) -> List[PathEntry]:
        """List all entries ordered by path."""
        with self._lock:
            try:
                rows = self.conn.execute(
                    "SELECT hash, time, filename, image FROM pinlist ORDER BY filename"
                ).fetchall()
            except sqlite3.Error as e:
                raise ContentIndexError("entries", e) from e
        return [PathEntry.from_row(row) for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self.conn.close()

    def _query_one(self, operation: str, sql: str, params: tuple) -> Optional[PathEntry]:
        with self._lock:
            try:
                row = self.conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise ContentIndexError(operation, e) from e
        return PathEntry.from_row(row)
