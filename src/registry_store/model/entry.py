"""
Content index entry model.

A path entry records which content hash a logical path was last
published as.
"""

from typing import Optional


class PathEntry:
    """
    One row of the content index.

    The path is the unique key; the hash is never empty once an
    entry exists.
    """

    def __init__(self, path: str, content_hash: str, timestamp: str, collection: str = ""):
        """
        Create an entry.

        Args:
            path: logical store path, e.g. /docker/registry/v2/...
            content_hash: backend content hash the path resolves to
            timestamp: publication time as stored by the index
            collection: collection tag (image name) for the path
        """
        if not content_hash:
            raise ValueError(f"Empty content hash for path: {path}")
        self.path = path
        self.content_hash = content_hash
        self.timestamp = timestamp
        self.collection = collection or ""

    @classmethod
    def from_row(cls, row) -> Optional['PathEntry']:
        """Build an entry from a (hash, time, filename, image) row."""
        if row is None:
            return None
        return cls(
            path=row['filename'],
            content_hash=row['hash'],
            timestamp=row['time'],
            collection=row['image'],
        )

    def to_dict(self) -> dict:
        return {
            'path': self.path,
            'hash': self.content_hash,
            'time': self.timestamp,
            'collection': self.collection,
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, PathEntry):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"PathEntry(path={self.path}, hash={self.content_hash[:12]}...)"
