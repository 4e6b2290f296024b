"""
Error types for registry store operations.

All errors are explicit and never silent. Each carries an ``http_status``
hint for the registry host that maps driver errors to responses.
"""


class RegistryStoreError(Exception):
    """Base exception for all registry store errors."""
    http_status = 500


class PathNotFoundError(RegistryStoreError):
    """Raised when a path has neither an index entry nor a local copy."""
    http_status = 404

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path not found: {path}")


class InvalidPathError(RegistryStoreError):
    """Raised when a path is malformed or escapes the root directory."""
    http_status = 400

    def __init__(self, path: str, reason: str = "invalid path"):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path: {path} ({reason})")


class InvalidOffsetError(RegistryStoreError):
    """Raised when a read offset lies beyond the end of the object."""
    http_status = 416

    def __init__(self, path: str, offset: int):
        self.path = path
        self.offset = offset
        super().__init__(f"Invalid offset {offset} for path: {path}")


class BackendError(RegistryStoreError):
    """Base class for content-addressable backend failures."""


class BackendUnavailableError(BackendError):
    """Raised when the backend cannot be reached or the transport fails."""

    def __init__(self, operation: str, cause: Exception = None):
        self.operation = operation
        self.cause = cause
        msg = f"Backend unavailable during {operation}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class BackendNotFoundError(BackendError):
    """Raised when the backend holds no object for a content hash."""

    def __init__(self, content_hash: str):
        self.content_hash = content_hash
        super().__init__(f"Backend has no object for hash: {content_hash}")


class ContentIndexError(RegistryStoreError):
    """Raised when a content index query or update fails."""

    def __init__(self, operation: str, cause: Exception = None):
        self.operation = operation
        self.cause = cause
        msg = f"Content index error during {operation}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class StateViolationError(RegistryStoreError):
    """Raised when a write session is used from a state that forbids it."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation}: writer already {state}")


class WriteConflictError(RegistryStoreError):
    """Raised when another writer already holds the path."""
    http_status = 409

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path is already open for writing: {path}")


class UnsupportedMethodError(RegistryStoreError):
    """Raised for operations this driver deliberately does not provide."""
    http_status = 501

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unsupported method: {method}")


class StorageError(RegistryStoreError):
    """Raised when cache mirror filesystem operations fail."""

    def __init__(self, operation: str, path: str, cause: Exception = None):
        self.operation = operation
        self.path = path
        self.cause = cause
        msg = f"Storage error during {operation}: {path}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)
