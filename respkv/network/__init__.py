"""Network module for respkv."""

from .tcp_server import KVServer

__all__ = ["KVServer"]
