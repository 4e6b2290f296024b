"""
File information returned by stat and walk.
"""

import os
import stat
from datetime import datetime, timezone


class FileInfo:
    """
    Metadata about a path in the cache mirror.

    Size is always 0 for directories.
    """

    def __init__(self, path: str, size: int, mod_time: datetime, is_dir: bool):
        self.path = path
        self.size = 0 if is_dir else size
        self.mod_time = mod_time
        self.is_dir = is_dir

    @classmethod
    def from_stat(cls, path: str, st: os.stat_result) -> 'FileInfo':
        """Build file info for a logical path from an os.stat result."""
        return cls(
            path=path,
            size=st.st_size,
            mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            is_dir=stat.S_ISDIR(st.st_mode),
        )

    def __repr__(self) -> str:
        kind = "dir" if self.is_dir else f"size={self.size}"
        return f"FileInfo(path={self.path}, {kind})"
