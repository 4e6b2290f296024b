"""
IPFS backend over the Kubo HTTP RPC API.

Only three RPC calls are used:
    /api/v0/add      publish (pins recursively)
    /api/v0/cat      fetch
    /api/v0/pin/ls   list pinned objects
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import BinaryIO, Dict

import httpx

from ..errors import BackendNotFoundError, BackendUnavailableError
from .base import ContentBackend, write_atomic

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://127.0.0.1:5001"
DEFAULT_TIMEOUT = 60.0

# Fragments of IPFS error messages that mean "no such object" rather
# than a daemon or transport fault.
_NOT_FOUND_MARKERS = ("not found", "invalid cid", "invalid path", "no link named")


def _error_message(response: httpx.Response) -> str:
    """Extract the daemon's error message without raising decode errors."""
    try:
        body = response.read()
    except httpx.HTTPError:
        return ""
    try:
        return str(json.loads(body).get("Message", ""))
    except (ValueError, AttributeError):
        return body.decode("utf-8", errors="replace")


class IpfsBackend(ContentBackend):
    """Content backend talking to a local or remote IPFS daemon."""

    name = "ipfs"

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Create a backend bound to one daemon endpoint."""
        self.base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        """Close underlying transport resources when owned."""
        if self._owns_client:
            self._client.close()

    def publish(self, stream: BinaryIO) -> str:
        """Add a stream to IPFS, pinning it, and return its CID."""
        try:
            response = self._client.post(
                "/api/v0/add",
                params={"pin": "true", "quieter": "true"},
                files={"file": ("data", stream, "application/octet-stream")},
            )
        except httpx.RequestError as exc:
            raise BackendUnavailableError("publish", exc) from exc

        if response.is_error:
            raise BackendUnavailableError(
                "publish",
                RuntimeError(f"HTTP {response.status_code}: {_error_message(response)}"),
            )

        # The add endpoint streams one JSON object per line; the last
        # line describes the root object.
        lines = [line for line in response.text.splitlines() if line.strip()]
        try:
            content_hash = json.loads(lines[-1])["Hash"]
        except (IndexError, KeyError, ValueError) as exc:
            raise BackendUnavailableError("publish", exc) from exc
        logger.debug("Published object %s", content_hash)
        return content_hash

    def fetch(self, content_hash: str, destination: str | Path) -> None:
        """Stream the object for a CID into destination."""
        try:
            with self._client.stream("POST", "/api/v0/cat", params={"arg": content_hash}) as response:
                if response.is_error:
                    message = _error_message(response)
                    if any(marker in message.lower() for marker in _NOT_FOUND_MARKERS):
                        raise BackendNotFoundError(content_hash)
                    raise BackendUnavailableError(
                        "fetch",
                        RuntimeError(f"HTTP {response.status_code}: {message}"),
                    )
                write_atomic(destination, response.iter_bytes())
        except httpx.RequestError as exc:
            raise BackendUnavailableError("fetch", exc) from exc
        except OSError as exc:
            raise BackendUnavailableError("fetch", exc) from exc
        logger.debug("Fetched %s into %s", content_hash, destination)

    def list_pinned(self) -> Dict[str, str]:
        """Return {CID: pin type} for all pins on the daemon."""
        try:
            response = self._client.post("/api/v0/pin/ls", params={"type": "all"})
        except httpx.RequestError as exc:
            raise BackendUnavailableError("list_pinned", exc) from exc

        if response.is_error:
            raise BackendUnavailableError(
                "list_pinned",
                RuntimeError(f"HTTP {response.status_code}: {_error_message(response)}"),
            )
        try:
            keys = response.json().get("Keys") or {}
        except ValueError as exc:
            raise BackendUnavailableError("list_pinned", exc) from exc
        return {cid: info.get("Type", "") for cid, info in keys.items()}

    def __repr__(self) -> str:
        return f"IpfsBackend(base_url={self.base_url})"
