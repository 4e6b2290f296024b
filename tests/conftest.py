"""
Shared fixtures for registry store tests.

Engines run against a local object backend that records every call.
"""

import threading
import time

import pytest

from registry_store import DriverParameters, RegistryStoreEngine
from registry_store.backend.local import LocalObjectBackend
from registry_store.config import BackendKind


class RecordingBackend(LocalObjectBackend):
    """Local object backend that records fetches and concurrent publishes."""

    def __init__(self, backend_root, publish_delay: float = 0.0):
        super().__init__(backend_root)
        self.publish_delay = publish_delay
        self.fetches = []
        self.publishes = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def publish(self, stream):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.publish_delay:
                time.sleep(self.publish_delay)
            content_hash = super().publish(stream)
            self.publishes.append(content_hash)
            return content_hash
        finally:
            with self._lock:
                self.active -= 1

    def fetch(self, content_hash, destination):
        self.fetches.append(content_hash)
        super().fetch(content_hash, destination)


@pytest.fixture
def make_engine(tmp_path):
    """
    Factory building engines over one registry root and backend directory.

    Engines built by the same factory share state on disk, so a second
    engine behaves like the store after a process restart.
    """
    engines = []

    def factory(backend=None, **overrides):
        params = DriverParameters(
            root_directory=str(tmp_path / "registry"),
            backend=BackendKind.LOCAL,
            backend_directory=str(tmp_path / "backend"),
            **overrides,
        )
        if backend is None:
            backend = RecordingBackend(tmp_path / "backend")
        engine = RegistryStoreEngine(params, backend=backend)
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        engine.close()


@pytest.fixture
def engine(make_engine):
    """Engine with default policies."""
    return make_engine()


@pytest.fixture
def backend(engine):
    """The recording backend behind the default engine."""
    return engine.context.backend
