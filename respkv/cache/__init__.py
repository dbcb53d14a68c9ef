"""Cache module for respkv."""

from .store import KVStore, ReadWriteLock

__all__ = ["KVStore", "ReadWriteLock"]
