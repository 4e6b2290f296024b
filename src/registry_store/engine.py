"""
Registry Store Engine.

Main entry point coordinating all components.
"""

import logging
from typing import Any, BinaryIO, Callable, Dict, List, Mapping, Optional

from .backend.base import PIN_RECURSIVE, ContentBackend
from .config import DriverParameters
from .context import StoreContext
from .driver import DRIVER_NAME, StoreDriver
from .model.fileinfo import FileInfo
from .regulator import Regulator, regulated
from .storage.writer import FileWriter

logger = logging.getLogger(__name__)


class RegistryStoreEngine:
    """
    Path-addressed store for a container registry, persisted in a
    content-addressable backend.

    This is the primary interface for:
    - Reading and writing objects by path
    - Stat, list, move, delete and walk over the path hierarchy
    - Reporting which backend pins belong to which paths

    Every public operation holds one regulator permit while it runs.
    """

    def __init__(
        self,
        params: Optional[DriverParameters] = None,
        backend: Optional[ContentBackend] = None,
        enumerate_pins: bool = True,
    ):
        """
        Initialize the store.

        Args:
            params: driver parameters; defaults apply when None
            backend: backend to use instead of the one params select
            enumerate_pins: log the paths of all recursive pins on startup
        """
        self.params = params or DriverParameters()
        self.context = StoreContext(self.params, backend)
        self.driver = StoreDriver(self.context)
        self.regulator = Regulator(self.params.max_threads)

        logger.info(
            "Registry store activated: root=%s backend=%s",
            self.context.mirror.root,
            self.context.backend,
        )
        if enumerate_pins:
            try:
                pinned = self.pinned_paths()
            except Exception:
                logger.error("Unable to enumerate pins from %s", self.context.backend)
                self.context.close()
                raise
            logger.info("Currently pinned files: %d", len(pinned))
            for content_hash, path in sorted(pinned.items()):
                logger.info("%s %s", content_hash, path or "")

    @classmethod
    def from_parameters(cls, parameters: Optional[Mapping[str, Any]] = None) -> 'RegistryStoreEngine':
        """Build an engine from the registry's storage parameter mapping."""
        return cls(DriverParameters.from_parameters(parameters))

    def name(self) -> str:
        return DRIVER_NAME

    # ========== Object Access ==========

    @regulated
    def get_content(self, path: str) -> bytes:
        """Retrieve the content stored at path."""
        return self.driver.get_content(path)

    @regulated
    def put_content(self, path: str, content: bytes, collection: Optional[str] = None) -> None:
        """Store content at path and publish it."""
        self.driver.put_content(path, content, collection)

    @regulated
    def reader(self, path: str, offset: int = 0) -> BinaryIO:
        """
        Open path for reading at offset.

        The returned stream belongs to the caller, who must close it.
        """
        return self.driver.reader(path, offset)

    @regulated
    def writer(self, path: str, append: bool = False, collection: Optional[str] = None) -> FileWriter:
        """
        Open a write session for path.

        Content becomes durable and published on commit().
        """
        return self.driver.writer(path, append, collection)

    # ========== Namespace ==========

    @regulated
    def stat(self, path: str) -> FileInfo:
        return self.driver.stat(path)

    @regulated
    def list(self, path: str) -> List[str]:
        return self.driver.list(path)

    @regulated
    def move(self, source_path: str, dest_path: str) -> None:
        self.driver.move(source_path, dest_path)

    @regulated
    def delete(self, path: str) -> None:
        self.driver.delete(path)

    @regulated
    def url_for(self, path: str, options: Optional[dict] = None) -> str:
        return self.driver.url_for(path, options)

    @regulated
    def walk(self, path: str, visitor: Callable[[FileInfo], None]) -> None:
        """Walk the tree below path, calling visitor for every entry."""
        self.driver.walk(path, visitor)

    # ========== Diagnostics ==========

    @regulated
    def pinned_paths(self) -> Dict[str, Optional[str]]:
        """
        Map every recursive backend pin to the path indexed for it.

        Pins unknown to the index map to None.
        """
        result = {}
        for content_hash, kind in self.context.backend.list_pinned().items():
            if kind != PIN_RECURSIVE:
                continue
            entry = self.context.index.lookup_by_hash(content_hash)
            result[content_hash] = entry.path if entry else None
        return result

    def close(self) -> None:
        """Release the index and backend."""
        self.context.close()

    def __enter__(self) -> 'RegistryStoreEngine':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"RegistryStoreEngine("
            f"root={self.context.mirror.root}, "
            f"backend={self.context.backend!r}, "
            f"max_threads={self.regulator.limit})"
        )
