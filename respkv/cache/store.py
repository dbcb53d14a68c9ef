"""
Key-Value Store Module

This module implements the shared in-memory key-value storage.

A single KVStore instance is created at startup and handed to every
connection handler. All access goes through the store's lock:
- set() takes the write lock (exclusive)
- get() takes the read lock (shared with other readers)
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple


class ReadWriteLock:
    """
    A lock allowing many concurrent readers or a single writer.

    Writers waiting for the lock block new readers from entering,
    so a steady stream of GETs cannot starve a SET.

    Usage:
        lock = ReadWriteLock()
        with lock.read_lock():
            ...
        with lock.write_lock():
            ...
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        """Hold the lock in shared mode for the duration of the block."""
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
    def write_lock(self) -> Iterator[None]:
        """Hold the lock in exclusive mode for the duration of the block."""
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class KVStore:
    """
    In-memory string-to-string store, safe for concurrent access.

    Keys are unique; a later set() overwrites the earlier value. There is
    no eviction and no expiration, the store grows for the lifetime of
    the process.

    Time Complexity: O(1) average for set() and get()
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._data: Dict[str, str] = {}

    def set(self, key: str, value: str) -> None:
        """
        Insert or overwrite a key-value pair.

        Args:
            key: The key to store
            value: The value to associate with the key
        """
        with self._lock.write_lock():
            self._data[key] = value

    def get(self, key: str) -> Tuple[Optional[str], bool]:
        """
        Look up the value for a key.

        Args:
            key: The key to look up

        Returns:
            (value, True) if the key is present, (None, False) otherwise
        """
        with self._lock.read_lock():
            if key in self._data:
                return self._data[key], True
            return None, False

    def size(self) -> int:
        """Get the current number of keys in the store."""
        with self._lock.read_lock():
            return len(self._data)
