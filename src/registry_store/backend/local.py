"""
Content-addressed object directory on local disk.

Objects are immutable and stored by the hash of their bytes.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Dict, List

from ..errors import BackendNotFoundError, BackendUnavailableError
from ..integrity.hashing import CHUNK_SIZE, get_hash_prefix, hash_stream
from .base import PIN_RECURSIVE, ContentBackend, write_atomic

logger = logging.getLogger(__name__)


def _read_chunks(handle: BinaryIO):
    while True:
        chunk = handle.read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


class LocalObjectBackend(ContentBackend):
    """
    Backend keeping objects in a sharded directory.

    Layout:
        backend_root/
            objects/
                <prefix>/
                    <hash>       # object bytes

    Every stored object is reported as a recursive pin.
    """

    name = "local"

    def __init__(self, backend_root: str | Path):
        """Initialize backend at given root."""
        self.backend_root = Path(backend_root).resolve()
        self.objects_dir = self.backend_root / "objects"

    def initialize(self) -> None:
        """
        Create the objects directory.

        Idempotent - safe to call multiple times.
        """
        try:
            self.objects_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendUnavailableError("initialize", e)

    def get_object_path(self, content_hash: str) -> Path:
        """
        Get filesystem path for an object by its hash.

        Uses 2-character prefix for directory sharding.
        """
        prefix = get_hash_prefix(content_hash, 2)
        return self.objects_dir / prefix / content_hash

    def has_object(self, content_hash: str) -> bool:
        """Check if an object exists in the backend."""
        try:
            return self.get_object_path(content_hash).is_file()
        except ValueError:
            return False

    def publish(self, stream: BinaryIO) -> str:
        """
        Store a stream and return its hash.

        The object is hashed while it is copied to a temp file, then
        renamed into place. Publishing the same bytes twice is a no-op
        that returns the same hash.
        """
        self.initialize()
        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(dir=str(self.objects_dir), prefix='.tmp_')
            with os.fdopen(fd, 'wb') as sink:
                content_hash, size = hash_stream(stream, sink)
                sink.flush()
                os.fsync(sink.fileno())

            obj_path = self.get_object_path(content_hash)
            obj_path.parent.mkdir(exist_ok=True)
            os.replace(temp_path, obj_path)
            temp_path = None
        except OSError as e:
            raise BackendUnavailableError("publish", e)
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)

        logger.debug("Stored object %s (%d bytes)", content_hash, size)
        return content_hash

    def fetch(self, content_hash: str, destination: str | Path) -> None:
        """Copy the object for a hash to destination."""
        if not self.has_object(content_hash):
            raise BackendNotFoundError(content_hash)
        try:
            with open(self.get_object_path(content_hash), 'rb') as source:
                write_atomic(destination, _read_chunks(source))
        except FileNotFoundError:
            raise BackendNotFoundError(content_hash)
        except OSError as e:
            raise BackendUnavailableError("fetch", e)

    def list_objects(self) -> List[str]:
        """
        List all object hashes in the backend.

        Scans all prefix directories.
        """
        objects = []

        if not self.objects_dir.exists():
            return objects

        try:
            for prefix_dir in self.objects_dir.iterdir():
                if not prefix_dir.is_dir():
                    continue

                for obj_file in prefix_dir.iterdir():
                    if obj_file.is_file():
                        objects.append(obj_file.name)

        except OSError as e:
            raise BackendUnavailableError("list_objects", e)

        return objects

    def list_pinned(self) -> Dict[str, str]:
        return {content_hash: PIN_RECURSIVE for content_hash in self.list_objects()}

    def __repr__(self) -> str:
        return f"LocalObjectBackend(root={self.backend_root})"
