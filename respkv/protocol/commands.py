"""
Protocol Command and Reply Definitions

This module defines the data structures for decoded commands, the
replies sent back to clients, and the errors raised while dispatching.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List

CRLF = "\r\n"
ENCODING = "utf-8"
# Keeps non UTF-8 payload bytes intact through a decode/encode cycle
ENCODING_ERRORS = "surrogateescape"

NULL_BULK_STRING = b"$-1\r\n"


class CommandType(Enum):
    """Enumeration of supported command types."""
    PING = auto()
    GET = auto()
    SET = auto()
    UNKNOWN = auto()


class ReplyType(Enum):
    """The four reply variants the server can produce."""
    BULK_STRING = auto()
    NULL_BULK_STRING = auto()
    SIMPLE_STRING = auto()
    SIMPLE_ERROR = auto()


class CommandError(Exception):
    """Base class for dispatch-time errors that are not sent to the client."""


class EmptyCommand(CommandError):
    """Raised when a request decodes to an empty array."""

    def __init__(self):
        super().__init__("empty command array")


class ArityError(CommandError):
    """Raised when a command is given too few arguments."""

    def __init__(self, command: str):
        super().__init__(f"not enough arguments for '{command}'")
        self.command = command


@dataclass
class Command:
    """
    Represents a decoded client command.

    Attributes:
        type: The type of command (PING, GET, SET, UNKNOWN)
        name: The command name, normalized to uppercase
        args: Positional arguments, used verbatim
    """
    type: CommandType
    name: str
    args: List[str] = field(default_factory=list)

    @classmethod
    def from_array(cls, arr: List[str]) -> "Command":
        """
        Build a Command from a decoded request array.

        The first element names the command and is matched
        case-insensitively. Raises EmptyCommand for an empty array.
        """
        if not arr:
            raise EmptyCommand()

        name = arr[0].upper()
        try:
            command_type = CommandType[name]
        except KeyError:
            command_type = CommandType.UNKNOWN

        return cls(type=command_type, name=name, args=list(arr[1:]))


@dataclass(frozen=True)
class Reply:
    """
    A single RESP reply.

    Exactly one of the four ReplyType variants; construct through the
    classmethods rather than directly.

    Attributes:
        type: Which reply variant this is
        data: Payload for bulk strings, status text or error message
    """
    type: ReplyType
    data: str = ""

    @classmethod
    def bulk_string(cls, data: str) -> "Reply":
        """Create a length-prefixed bulk string reply."""
        return cls(type=ReplyType.BULK_STRING, data=data)

    @classmethod
    def null_bulk_string(cls) -> "Reply":
        """Create the null bulk string reply (absent value)."""
        return cls(type=ReplyType.NULL_BULK_STRING)

    @classmethod
    def simple_string(cls, data: str) -> "Reply":
        """Create a simple string (status) reply."""
        return cls(type=ReplyType.SIMPLE_STRING, data=data)

    @classmethod
    def simple_error(cls, message: str) -> "Reply":
        """Create a simple error reply."""
        return cls(type=ReplyType.SIMPLE_ERROR, data=message)

    @classmethod
    def pong(cls) -> "Reply":
        return cls.simple_string("PONG")

    @classmethod
    def ok(cls) -> "Reply":
        return cls.simple_string("OK")

    def serialize(self) -> bytes:
        """
        Encode the reply into wire bytes.

        Examples:
            >>> Reply.bulk_string("hello").serialize()
            b'$5\\r\\nhello\\r\\n'
            >>> Reply.null_bulk_string().serialize()
            b'$-1\\r\\n'
            >>> Reply.pong().serialize()
            b'+PONG\\r\\n'
            >>> Reply.simple_error("oops").serialize()
            b'-oops\\r\\n'
        """
        if self.type is ReplyType.NULL_BULK_STRING:
            return NULL_BULK_STRING

        payload = self.data.encode(ENCODING, ENCODING_ERRORS)
        if self.type is ReplyType.BULK_STRING:
            return b"$%d\r\n%s\r\n" % (len(payload), payload)
        if self.type is ReplyType.SIMPLE_STRING:
            return b"+" + payload + b"\r\n"
        return b"-" + payload + b"\r\n"
