"""
Command Dispatcher Module

Routes a decoded request to the matching command handler and builds the
reply. The store is the only state shared between invocations.

Commands:
    PING [message]   -> +PONG | $<len> message
    SET <key> <val>  -> +OK
    GET <key>        -> $<len> value | $-1
"""

import logging
from typing import List

from ..cache.store import KVStore
from .commands import ArityError, Command, CommandType, Reply

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """
    Executes decoded commands against a KVStore.

    Attributes:
        store: The KVStore shared by all connections
    """

    def __init__(self, store: KVStore):
        self.store = store
        self._handlers = {
            CommandType.PING: self._ping,
            CommandType.SET: self._set,
            CommandType.GET: self._get,
        }

    def dispatch(self, arr: List[str]) -> Reply:
        """
        Execute one decoded request.

        Args:
            arr: Command name followed by its arguments

        Returns:
            The Reply to send to the client

        Raises:
            EmptyCommand: arr is empty
            ArityError: SET was given fewer than two arguments
        """
        command = Command.from_array(arr)
        logger.debug(f"Dispatching command: {command.name}")

        handler = self._handlers.get(command.type)
        if handler is None:
            logger.info(f"Unknown command: {command.name}")
            return Reply.simple_error(f"unknown command: {command.name}")
        return handler(command)

    def _ping(self, command: Command) -> Reply:
        if command.args:
            return Reply.bulk_string(command.args[0])
        return Reply.pong()

    def _set(self, command: Command) -> Reply:
        if len(command.args) < 2:
            raise ArityError(command.name)

        key, value = command.args[0], command.args[1]
        self.store.set(key, value)
        logger.debug(f"{key} was set")
        return Reply.ok()

    def _get(self, command: Command) -> Reply:
        # Reported to the client, unlike SET
        if not command.args:
            return Reply.simple_error("not enough arguments")

        value, found = self.store.get(command.args[0])
        if not found:
            logger.debug(f"Key not found: {command.args[0]}")
            return Reply.null_bulk_string()
        return Reply.bulk_string(value)
