"""
respkv: Minimal RESP Key-Value Server

An in-memory key-value server speaking a subset of the Redis
serialization protocol (PING, GET, SET), built with Python asyncio.
"""

__version__ = "1.0.0"
