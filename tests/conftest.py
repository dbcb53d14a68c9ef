"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from typing import AsyncGenerator

from respkv.cache.store import KVStore
from respkv.network.tcp_server import KVServer
from respkv.protocol.dispatcher import CommandDispatcher
from respkv.protocol.parser import RespParser


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# KVStore Fixtures
# ============================================================================

@pytest.fixture
def store() -> KVStore:
    """Create a fresh, empty KVStore instance."""
    return KVStore()


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> RespParser:
    """Create a RespParser instance."""
    return RespParser()


@pytest.fixture
def dispatcher(store: KVStore) -> CommandDispatcher:
    """Create a CommandDispatcher bound to the fresh store."""
    return CommandDispatcher(store)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


async def start_background_server(srv: KVServer) -> asyncio.Task:
    """Start a server in a background task and wait for it to listen."""
    task = asyncio.create_task(srv.start())
    for _ in range(50):
        if srv.is_running():
            break
        await asyncio.sleep(0.01)
    return task


async def stop_background_server(srv: KVServer, task: asyncio.Task) -> None:
    await srv.stop()
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@pytest_asyncio.fixture
async def server(server_port: int) -> AsyncGenerator[KVServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a KVServer on a random free port
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    srv = KVServer(host='127.0.0.1', port=server_port)
    task = await start_background_server(srv)

    yield srv

    await stop_background_server(srv, task)


@pytest_asyncio.fixture
async def launch_server(server_port: int):
    """
    Factory fixture starting a server around a caller-supplied store.

    Usage:
        async def test_something(launch_server):
            srv = await launch_server(store=FaultyStore())
    """
    started = []

    async def launch(store: KVStore = None) -> KVServer:
        srv = KVServer(host='127.0.0.1', port=server_port, store=store)
        started.append((srv, await start_background_server(srv)))
        return srv

    yield launch

    for srv, task in started:
        await stop_background_server(srv, task)


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    RESP client for testing server interactions.

    Usage:
        async with AsyncClient('127.0.0.1', port) as client:
            reply = await client.send_command("SET", "key", "value")
            assert reply == b"+OK\\r\\n"
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.parser = RespParser()
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except Exception:
                pass

    async def send_raw(self, data: bytes) -> None:
        """Write raw bytes without waiting for a reply."""
        self.writer.write(data)
        await self.writer.drain()

    async def read_reply(self) -> bytes:
        """
        Read exactly one RESP reply.

        Returns:
            The complete reply bytes, terminator included
        """
        line = await asyncio.wait_for(self.reader.readline(), timeout=2)
        if line.startswith(b"$") and not line.startswith(b"$-1"):
            length = int(line[1:-2])
            line += await asyncio.wait_for(
                self.reader.readexactly(length + 2), timeout=2
            )
        return line

    async def send_command(self, *args: str) -> bytes:
        """
        Send a command encoded as a RESP array and receive the reply.

        Args:
            args: Command name followed by its arguments

        Returns:
            The raw reply bytes
        """
        await self.send_raw(self.parser.encode_request(args))
        return await self.read_reply()

    async def is_closed_by_server(self) -> bool:
        """Check whether the server has closed the connection."""
        data = await asyncio.wait_for(self.reader.read(), timeout=2)
        return data == b""

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                reply = await client.send_command("GET", "key")
    """
    def factory(port: int = None) -> AsyncClient:
        return AsyncClient('127.0.0.1', port or server_port)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
