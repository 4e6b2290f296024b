"""
Registry Store - path-addressed registry storage over a content-addressable backend.

This package provides:
- A content index mapping registry paths to content hashes (SQLite)
- A local cache mirror used as write buffer and read cache
- Write sessions that publish committed content to the backend
- Reads that reconstruct evicted files from the backend on demand
- IPFS and local-directory backends

Main entry point:
    RegistryStoreEngine - primary interface for all operations

Example usage:
    from registry_store import RegistryStoreEngine

    engine = RegistryStoreEngine.from_parameters({
        'rootdirectory': '/var/lib/registry',
        'backendurl': 'http://127.0.0.1:5001',
    })

    engine.put_content('/docker/registry/v2/repositories/app/blob', b'hello')
    assert engine.get_content('/docker/registry/v2/repositories/app/blob') == b'hello'
"""

from .engine import RegistryStoreEngine
from .config import BackendKind, DriverParameters, ReadPolicy, WritePolicy
from .model.entry import PathEntry
from .model.fileinfo import FileInfo
from .storage.writer import FileWriter, WriterState
from .walk import SkipDir
from .errors import (
    RegistryStoreError,
    PathNotFoundError,
    InvalidPathError,
    InvalidOffsetError,
    BackendError,
    BackendUnavailableError,
    BackendNotFoundError,
    ContentIndexError,
    StateViolationError,
    WriteConflictError,
    UnsupportedMethodError,
    StorageError,
)

__all__ = [
    'RegistryStoreEngine',
    'DriverParameters',
    'BackendKind',
    'ReadPolicy',
    'WritePolicy',
    'PathEntry',
    'FileInfo',
    'FileWriter',
    'WriterState',
    'SkipDir',
    'RegistryStoreError',
    'PathNotFoundError',
    'InvalidPathError',
    'InvalidOffsetError',
    'BackendError',
    'BackendUnavailableError',
    'BackendNotFoundError',
    'ContentIndexError',
    'StateViolationError',
    'WriteConflictError',
    'UnsupportedMethodError',
    'StorageError',
]
