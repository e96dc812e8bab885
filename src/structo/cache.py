"""Process-wide, read-mostly caches keyed by type."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Generic, TypeVar

V = TypeVar("V")

_MISSING = object()


class RWLock:
    """
    Multiple-reader / single-writer lock.

    Readers share the lock; a writer waits until all readers are gone and
    blocks new readers while it waits, so a steady stream of readers cannot
    starve it.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TypeCache(Generic[V]):
    """
    Lazily populated mapping from a type to a value derived from it.

    Entries are never invalidated: types are immutable for the lifetime of the
    process. Two threads missing the same key both build the entry and the
    last write wins, which is harmless since `build` is a pure function of the
    type.

    Parameters
    ----------
    build : Callable[[Any], V]
        Computes the entry for a type on a cache miss.
    """

    def __init__(self, build: Callable[[Any], V]) -> None:
        self._build = build
        self._lock = RWLock()
        self._entries: dict[Any, V] = {}

    def get(self, key: Any) -> V:
        with self._lock.read():
            value = self._entries.get(key, _MISSING)
        if value is not _MISSING:
            return value  # type: ignore[return-value]

        value = self._build(key)
        with self._lock.write():
            self._entries[key] = value
        return value

    def __contains__(self, key: Any) -> bool:
        with self._lock.read():
            return key in self._entries

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)
