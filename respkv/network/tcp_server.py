"""
Async TCP Server Module

This module implements the asynchronous TCP server for respkv.

Each accepted connection runs in its own coroutine. Within a connection
requests are handled strictly in order:
    read bytes -> frame -> decode -> dispatch -> write reply

Requests are framed on their declared RESP lengths, so a request split
over several reads, or several requests arriving in one read, are both
handled correctly.
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from typing import Optional, Set

from ..cache.store import KVStore
from ..config.settings import settings
from ..protocol.commands import CommandError
from ..protocol.dispatcher import CommandDispatcher
from ..protocol.parser import DecodeError, RequestFramer, RespParser

logger = logging.getLogger(__name__)


class RequestTooLarge(DecodeError):
    """Buffered bytes exceed MAX_REQUEST_SIZE without completing a request."""


class KVServer:
    """
    Asynchronous TCP server for the respkv service.

    Features:
    - Non-blocking I/O with asyncio, one coroutine per client
    - Persistent connections (multiple commands per connection)
    - Pipelined requests
    - Faults contained to the connection that caused them
    - Shared KVStore across all connections

    Usage:
        server = KVServer(host='localhost', port=3333)
        await server.start()  # Runs forever

    Attributes:
        host: Server bind address
        port: Server port number
        store: The KVStore instance shared by all connections
        parser: The RespParser for framing and decoding requests
        dispatcher: The CommandDispatcher executing requests on the store
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: KVStore = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings)
            store: KVStore instance (creates new one if not provided)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.store = store if store is not None else KVStore()
        self.parser = RespParser()
        self.dispatcher = CommandDispatcher(self.store)

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._connection_count = 0
        self._active_connections = 0
        self._total_commands = 0
        self._writers: Set[StreamWriter] = set()

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Reads requests until the client disconnects, a request cannot be
        decoded, or an I/O error occurs. The writer is always closed on
        the way out.

        Args:
            reader: StreamReader for reading from the client
            writer: StreamWriter for writing to the client
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        self._active_connections += 1
        self._writers.add(writer)
        logger.info(f"Serving {addr}")

        buffer = bytearray()
        framer = RequestFramer(self.parser)
        try:
            while True:
                data = await reader.read(settings.READ_BUFFER_SIZE)
                if not data:
                    if buffer:
                        logger.warning(f"Client {addr} disconnected mid-request ({len(buffer)} bytes)")
                    else:
                        logger.debug(f"Client disconnected: {addr}")
                    break

                logger.debug(f"Read {len(data)} bytes from {addr}")
                buffer += data
                await self._process_buffer(buffer, framer, writer, addr)

                if len(buffer) > settings.MAX_REQUEST_SIZE:
                    raise RequestTooLarge(f"request exceeds {settings.MAX_REQUEST_SIZE} bytes")

        except DecodeError as exc:
            logger.warning(f"Error parsing RESP array from {addr}: {exc}")
        except ConnectionError as exc:
            logger.debug(f"Connection lost with {addr}: {exc}")
        except OSError as exc:
            logger.warning(f"I/O error with {addr}: {exc}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            self._active_connections -= 1
            self._writers.discard(writer)
            logger.info(f"Closing connection {addr}")
            try:
                writer.close()
                await writer.wait_closed()
            except Exception:
                pass

    async def _process_buffer(
            self,
            buffer: bytearray,
            framer: RequestFramer,
            writer: StreamWriter,
            addr,
    ) -> None:
        """
        Execute every complete request at the front of the buffer.

        Executed requests are removed from the buffer in place; what is
        left is the start of a request not yet complete.
        """
        while True:
            frame_end = framer.next_frame(buffer)
            if frame_end is None:
                return

            frame = bytes(buffer[:frame_end])
            del buffer[:frame_end]
            framer.reset()
            arr = self.parser.parse_request(frame)
            self._total_commands += 1

            try:
                reply = self.dispatcher.dispatch(arr)
            except CommandError as exc:
                logger.warning(f"Error handling command from {addr}: {exc}")
                continue

            writer.write(self.parser.format_response(reply))
            await writer.drain()

    async def start(self) -> None:
        """
        Start the server and begin accepting connections.

        Creates the asyncio server and runs forever (or until cancelled).

        Example:
            server = KVServer(port=3333)
            asyncio.run(server.start())
        """
        if self._running:
            return

        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
        )
        self._running = True

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Listening on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Server start cancelled")
        finally:
            self._running = False

    async def stop(self) -> None:
        """
        Stop the server gracefully.

        Closes the listener and every open client connection, then waits
        for the server to fully shut down. Idle clients would otherwise
        keep wait_closed() from returning.
        """
        if self._server is None:
            return

        self._server.close()
        for writer in list(self._writers):
            writer.close()
        try:
            await self._server.wait_closed()
        finally:
            self._server = None
            self._running = False

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with connection counts, command count and
            the number of keys in the store.
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "active_connections": self._active_connections,
            "total_commands": self._total_commands,
            "keys": self.store.size(),
        }
