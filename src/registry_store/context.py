"""
Process-wide resources shared by every store operation.
"""

import logging
from typing import Optional

from .backend.base import ContentBackend
from .backend.ipfs import IpfsBackend
from .backend.local import LocalObjectBackend
from .config import BackendKind, DriverParameters
from .storage.content_index import INDEX_FILENAME, ContentIndex
from .storage.locks import PathLockTable
from .storage.mirror import CacheMirror

logger = logging.getLogger(__name__)


def create_backend(params: DriverParameters) -> ContentBackend:
    """Build the backend selected by the parameters."""
    if params.backend is BackendKind.LOCAL:
        backend = LocalObjectBackend(params.backend_directory)
        backend.initialize()
        return backend
    return IpfsBackend(base_url=params.backend_url, timeout_seconds=params.backend_timeout)


class StoreContext:
    """
    Backend handle, index handle and mirror root of one store.

    Built exactly once per engine and passed by reference to the
    driver and to every write session.
    """

    def __init__(self, params: DriverParameters, backend: Optional[ContentBackend] = None):
        """
        Initialize the mirror, open the index and connect the backend.

        Args:
            params: driver parameters
            backend: backend to use instead of the one params select
        """
        self.params = params
        self.mirror = CacheMirror(params.root_directory)
        self.mirror.initialize()
        self.index = ContentIndex(self.mirror.root / INDEX_FILENAME)
        self.backend = backend if backend is not None else create_backend(params)
        self.path_locks = PathLockTable()

    def close(self) -> None:
        """Close the index and the backend transport."""
        try:
            self.index.close()
        finally:
            self.backend.close()
