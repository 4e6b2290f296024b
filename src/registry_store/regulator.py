"""
Counting permit gate bounding concurrent store operations.
"""

import functools
import threading


class Regulator:
    """
    Limits how many operations run at once.

    Use as a context manager; the permit is released on every exit
    path, including exceptions.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError(f"Regulator limit must be positive, got {limit}")
        self.limit = limit
        self._semaphore = threading.BoundedSemaphore(limit)
        self._count_lock = threading.Lock()
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        """Number of permits currently held."""
        with self._count_lock:
            return self._in_flight

    def __enter__(self) -> 'Regulator':
        self._semaphore.acquire()
        with self._count_lock:
            self._in_flight += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        with self._count_lock:
            self._in_flight -= 1
        self._semaphore.release()


def regulated(method):
    """Run a method of an object with a ``regulator`` attribute under a permit."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.regulator:
            return method(self, *args, **kwargs)

    return wrapper
