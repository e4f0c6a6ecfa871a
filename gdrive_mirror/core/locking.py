"""
Reader/writer lock guarding the metadata store.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

__all__ = [
    "ReadWriteLock",
]


class ReadWriteLock:
    """
    Lock allowing any number of concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of lookups can't
    starve a pending insert.
    """

    _cond: threading.Condition
    _readers: int
    _writer: bool
    _writers_waiting: int

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        """
        Hold the shared side of the lock.
        """
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """
        Hold the exclusive side of the lock.
        """
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()
