"""
Local filesystem mirror of the path-addressed store.

Holds write buffers and reconstructable read copies.
"""

import os
import posixpath
import shutil
from pathlib import Path
from typing import BinaryIO, List, Tuple

from ..errors import InvalidPathError, PathNotFoundError, StorageError
from ..model.fileinfo import FileInfo


class CacheMirror:
    """
    Maps logical store paths onto a directory tree.

    Layout:
        root_directory/
            pindb                # content index database
            docker/registry/v2/  # mirrored registry paths
                ...

    A file may be missing from the mirror even though the content
    index knows its hash; callers reconstruct it from the backend.
    """

    def __init__(self, root_directory: str | Path):
        """Initialize mirror at given root."""
        self.root = Path(root_directory).resolve()

    def initialize(self) -> None:
        """
        Create the root directory.

        Idempotent - safe to call multiple times.
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("initialize", str(self.root), e)

    @staticmethod
    def normalize(path: str) -> str:
        """
        Get the canonical form of a logical path.

        Canonical paths start with '/' and carry no empty, '.' or
        trailing segments, so '/a//x/' and 'a/x' both become '/a/x'.
        Rejects paths with '..' segments so nothing escapes the root.
        """
        if not isinstance(path, str):
            raise InvalidPathError(repr(path), "path must be a string")
        if '..' in path.split('/') or '\x00' in path:
            raise InvalidPathError(path, "path escapes root directory")
        relative = posixpath.normpath('/' + path).lstrip('/')
        if not relative or relative == '.':
            return '/'
        return '/' + relative

    def full_path(self, path: str) -> Path:
        """Get the filesystem path for a logical path."""
        relative = self.normalize(path).lstrip('/')
        if not relative:
            return self.root
        return self.root / relative

    def ensure_parent_dirs(self, path: str) -> Path:
        """Ensure the directory holding a path exists; return its full path."""
        full = self.full_path(path)
        try:
            full.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("mkdir", str(full.parent), e)
        return full

    def exists(self, path: str) -> bool:
        """Check if a path is present in the mirror."""
        return self.full_path(path).exists()

    def open_read(self, path: str) -> BinaryIO:
        """
        Open a mirrored file read-only.

        Raises PathNotFoundError if the file is not present.
        """
        full = self.full_path(path)
        try:
            return open(full, 'rb')
        except (FileNotFoundError, IsADirectoryError):
            raise PathNotFoundError(path)
        except OSError as e:
            raise StorageError("open_read", str(full), e)

    def open_write(self, path: str, append: bool) -> Tuple[BinaryIO, int]:
        """
        Open (creating if needed) a mirrored file for writing.

        Truncates unless append; with append the handle is positioned
        at end-of-file.

        Returns (handle, size of the file when opened).
        """
        full = self.ensure_parent_dirs(path)
        try:
            handle = open(full, 'ab' if append else 'wb')
        except OSError as e:
            raise StorageError("open_write", str(full), e)
        try:
            base_size = handle.seek(0, os.SEEK_END)
        except OSError as e:
            handle.close()
            raise StorageError("seek", str(full), e)
        return handle, base_size

    def stat(self, path: str) -> FileInfo:
        """
        Stat a mirrored path.

        Raises PathNotFoundError if the path is not present.
        """
        full = self.full_path(path)
        try:
            st = full.stat()
        except FileNotFoundError:
            raise PathNotFoundError(path)
        except OSError as e:
            raise StorageError("stat", str(full), e)
        return FileInfo.from_stat(path, st)

    def list_children(self, path: str) -> List[str]:
        """
        List names of the immediate children of a mirrored directory.

        Raises PathNotFoundError if the directory is not present.
        """
        full = self.full_path(path)
        try:
            return os.listdir(full)
        except FileNotFoundError:
            raise PathNotFoundError(path)
        except OSError as e:
            raise StorageError("list", str(full), e)

    def rename(self, src: str, dst: str) -> None:
        """
        Move a mirrored path, replacing whatever is at the destination.

        Raises PathNotFoundError if the source is not present.
        """
        source = self.full_path(src)
        if not source.exists():
            raise PathNotFoundError(src)
        dest = self.ensure_parent_dirs(dst)
        try:
            os.replace(source, dest)
        except OSError as e:
            raise StorageError("rename", f"{source} -> {dest}", e)

    def remove_recursive(self, path: str) -> None:
        """
        Remove a mirrored file or directory tree.

        Raises PathNotFoundError if the path is not present.
        """
        full = self.full_path(path)
        try:
            is_dir = full.is_dir() and not full.is_symlink()
            if is_dir:
                shutil.rmtree(full)
            else:
                full.unlink()
        except FileNotFoundError:
            raise PathNotFoundError(path)
        except OSError as e:
            raise StorageError("remove", str(full), e)
