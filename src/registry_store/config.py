"""Driver configuration for the registry store.

Parameters arrive from the registry's storage section as a flat mapping
with lower-case keys (``rootdirectory``, ``maxthreads``, ...).
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

DEFAULT_ROOT_DIRECTORY = "/var/lib/registry"
DEFAULT_MAX_THREADS = 100
# Values of maxthreads below this are raised to it.
MIN_THREADS = 25
DEFAULT_BACKEND_URL = "http://127.0.0.1:5001"
DEFAULT_BACKEND_TIMEOUT = 60.0
DEFAULT_REPOSITORY_PREFIX = "/docker/registry/v2/repositories"

ENV_PREFIX = "REGISTRY_STORAGE_IPFS_"


class ReadPolicy(str, Enum):
    """When a reader refetches an indexed path from the backend."""

    ALWAYS_REFRESH = "always-refresh"
    FETCH_IF_ABSENT = "fetch-if-absent"


class WritePolicy(str, Enum):
    """How concurrent writers to the same path are treated."""

    LAST_WRITER_WINS = "last-writer-wins"
    EXCLUSIVE = "exclusive"


class BackendKind(str, Enum):
    IPFS = "ipfs"
    LOCAL = "local"


def get_limit_from_parameter(param: Any, minimum: int, default: int) -> int:
    """Parse an integer limit, falling back to default and clamping to minimum.

    Accepts ints and numeric strings. Raises ValueError for anything else.
    """
    if param is None:
        return default
    if isinstance(param, bool):
        raise ValueError(f"invalid value for limit parameter: {param!r}")
    if isinstance(param, int):
        limit = param
    elif isinstance(param, str):
        try:
            limit = int(param.strip())
        except ValueError:
            raise ValueError(f"parameter must be an integer, {param!r} invalid") from None
    else:
        raise ValueError(f"invalid type for limit parameter: {type(param).__name__}")
    return max(limit, minimum)


def _parse_enum(enum_cls, value: Any, key: str):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"{key} must be one of: {choices}; got {value!r}") from None


@dataclass(slots=True)
class DriverParameters:
    """All driver configuration in one place.

    Recognized parameters (all optional):
        rootdirectory:     Mirror root; the index lives at <root>/pindb.
        maxthreads:        Concurrent operation limit, default 100, floor 25.
        backend:           "ipfs" (default) or "local".
        backendurl:        IPFS RPC endpoint, default http://127.0.0.1:5001.
        backendtimeout:    Seconds per backend request, default 60.
        backenddirectory:  Object directory for the local backend.
        readpolicy:        "always-refresh" (default) or "fetch-if-absent".
        writepolicy:       "last-writer-wins" (default) or "exclusive".
        repositoryprefix:  Path prefix stripped before deriving collections.
    """

    root_directory: str = DEFAULT_ROOT_DIRECTORY
    max_threads: int = DEFAULT_MAX_THREADS
    backend: BackendKind = BackendKind.IPFS
    backend_url: str = DEFAULT_BACKEND_URL
    backend_timeout: float = DEFAULT_BACKEND_TIMEOUT
    backend_directory: Optional[str] = None
    read_policy: ReadPolicy = ReadPolicy.ALWAYS_REFRESH
    write_policy: WritePolicy = WritePolicy.LAST_WRITER_WINS
    repository_prefix: str = DEFAULT_REPOSITORY_PREFIX

    @classmethod
    def from_parameters(cls, parameters: Optional[Mapping[str, Any]]) -> "DriverParameters":
        """Build parameters from the registry's storage mapping.

        Raises ValueError on invalid values.
        """
        params = cls()
        if not parameters:
            return params

        if parameters.get("rootdirectory") is not None:
            params.root_directory = str(parameters["rootdirectory"])

        try:
            params.max_threads = get_limit_from_parameter(
                parameters.get("maxthreads"), MIN_THREADS, DEFAULT_MAX_THREADS
            )
        except ValueError as e:
            raise ValueError(f"maxthreads config error: {e}") from None

        if parameters.get("backend") is not None:
            params.backend = _parse_enum(BackendKind, parameters["backend"], "backend")
        if parameters.get("backendurl") is not None:
            params.backend_url = str(parameters["backendurl"])
        if parameters.get("backendtimeout") is not None:
            try:
                params.backend_timeout = float(parameters["backendtimeout"])
            except (TypeError, ValueError):
                raise ValueError(
                    f"backendtimeout must be a number, got {parameters['backendtimeout']!r}"
                ) from None
            if params.backend_timeout <= 0:
                raise ValueError("backendtimeout must be positive")
        if parameters.get("backenddirectory") is not None:
            params.backend_directory = str(parameters["backenddirectory"])
        if parameters.get("readpolicy") is not None:
            params.read_policy = _parse_enum(ReadPolicy, parameters["readpolicy"], "readpolicy")
        if parameters.get("writepolicy") is not None:
            params.write_policy = _parse_enum(WritePolicy, parameters["writepolicy"], "writepolicy")
        if parameters.get("repositoryprefix") is not None:
            params.repository_prefix = str(parameters["repositoryprefix"])

        if params.backend is BackendKind.LOCAL and not params.backend_directory:
            raise ValueError("backenddirectory is required for the local backend")
        return params

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DriverParameters":
        """Build parameters from REGISTRY_STORAGE_IPFS_<KEY> environment variables."""
        environ = os.environ if environ is None else environ
        parameters = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in environ.items()
            if key.startswith(ENV_PREFIX)
        }
        return cls.from_parameters(parameters)
