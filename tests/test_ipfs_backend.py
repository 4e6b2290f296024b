"""
Test the IPFS backend adapter.

Uses httpx.MockTransport in place of a running daemon.
"""

import json

import httpx
import pytest

from registry_store import (
    BackendNotFoundError,
    BackendUnavailableError,
    DriverParameters,
    RegistryStoreEngine,
)
from registry_store.backend.ipfs import IpfsBackend


def make_backend(handler) -> IpfsBackend:
    return IpfsBackend(base_url="http://ipfs.test:5001", transport=httpx.MockTransport(handler))


def ipfs_error(request: httpx.Request, message: str) -> httpx.Response:
    body = {"Message": message, "Code": 0, "Type": "error"}
    return httpx.Response(500, json=body, request=request)


class TestPublish:
    """Test adding objects."""

    def test_publish_returns_cid(self):
        """Publish posts the stream to /api/v0/add and returns the CID."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['method'] = request.method
            seen['path'] = request.url.path
            seen['pin'] = request.url.params.get("pin")
            seen['body'] = request.read()
            line = json.dumps({"Name": "data", "Hash": "QmHello", "Size": "13"})
            return httpx.Response(200, text=line + "\n", request=request)

        backend = make_backend(handler)
        try:
            with open(__file__, 'rb') as stream:
                cid = backend.publish(stream)
        finally:
            backend.close()

        assert cid == "QmHello"
        assert seen['method'] == "POST"
        assert seen['path'] == "/api/v0/add"
        assert seen['pin'] == "true"
        assert b"Test the IPFS backend adapter." in seen['body']

    def test_publish_uses_last_line(self):
        """With several progress lines the last one names the root object."""
        def handler(request: httpx.Request) -> httpx.Response:
            lines = [
                json.dumps({"Name": "data", "Hash": "QmChunk"}),
                json.dumps({"Name": "data", "Hash": "QmRoot"}),
            ]
            return httpx.Response(200, text="\n".join(lines), request=request)

        backend = make_backend(handler)
        try:
            assert backend.publish(b"payload") == "QmRoot"
        finally:
            backend.close()

    def test_publish_transport_failure(self):
        """Transport faults surface as BackendUnavailableError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend = make_backend(handler)
        try:
            with pytest.raises(BackendUnavailableError) as exc_info:
                backend.publish(b"payload")
        finally:
            backend.close()

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    def test_publish_daemon_error(self):
        """Daemon errors on add surface as BackendUnavailableError."""
        backend = make_backend(lambda request: ipfs_error(request, "repo is locked"))
        try:
            with pytest.raises(BackendUnavailableError):
                backend.publish(b"payload")
        finally:
            backend.close()


class TestFetch:
    """Test retrieving objects."""

    def test_fetch_writes_destination(self, tmp_path):
        """Fetch streams /api/v0/cat into the destination, replacing it."""
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v0/cat"
            assert request.url.params.get("arg") == "QmHello"
            return httpx.Response(200, content=b"hello", request=request)

        destination = tmp_path / "blob"
        destination.write_bytes(b"stale content that is longer")

        backend = make_backend(handler)
        try:
            backend.fetch("QmHello", destination)
        finally:
            backend.close()

        assert destination.read_bytes() == b"hello"
        assert [p.name for p in tmp_path.iterdir()] == ["blob"]

    def test_fetch_not_found(self, tmp_path):
        """A daemon 'not found' maps to BackendNotFoundError."""
        backend = make_backend(lambda request: ipfs_error(request, "merkledag: not found"))
        try:
            with pytest.raises(BackendNotFoundError):
                backend.fetch("QmMissing", tmp_path / "blob")
        finally:
            backend.close()

        assert not (tmp_path / "blob").exists()

    def test_fetch_other_daemon_error(self, tmp_path):
        """Other daemon failures map to BackendUnavailableError."""
        backend = make_backend(lambda request: ipfs_error(request, "context deadline exceeded"))
        try:
            with pytest.raises(BackendUnavailableError):
                backend.fetch("QmHello", tmp_path / "blob")
        finally:
            backend.close()

    def test_fetch_timeout(self, tmp_path):
        """Timeouts are transport failures."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        backend = make_backend(handler)
        try:
            with pytest.raises(BackendUnavailableError):
                backend.fetch("QmHello", tmp_path / "blob")
        finally:
            backend.close()


class TestPins:
    """Test pin enumeration."""

    @staticmethod
    def pin_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v0/pin/ls":
            keys = {
                "QmRecursive": {"Type": "recursive"},
                "QmOrphan": {"Type": "recursive"},
                "QmIndirect": {"Type": "indirect"},
            }
            return httpx.Response(200, json={"Keys": keys}, request=request)
        return httpx.Response(404, request=request)

    def test_list_pinned(self):
        """list_pinned returns every pin with its type."""
        backend = make_backend(self.pin_handler)
        try:
            pins = backend.list_pinned()
        finally:
            backend.close()

        assert pins == {
            "QmRecursive": "recursive",
            "QmOrphan": "recursive",
            "QmIndirect": "indirect",
        }

    def test_engine_maps_pins_to_paths(self, tmp_path):
        """The engine reports the indexed path of each recursive pin."""
        params = DriverParameters(root_directory=str(tmp_path / "registry"))
        engine = RegistryStoreEngine(params, backend=make_backend(self.pin_handler))
        try:
            engine.context.index.upsert("/docker/x", "QmRecursive", "docker")

            assert engine.pinned_paths() == {
                "QmRecursive": "/docker/x",
                "QmOrphan": None,
            }
        finally:
            engine.close()

    def test_engine_startup_requires_backend(self, tmp_path):
        """An unreachable daemon fails engine construction."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        params = DriverParameters(root_directory=str(tmp_path / "registry"))
        with pytest.raises(BackendUnavailableError):
            RegistryStoreEngine(params, backend=make_backend(handler))
