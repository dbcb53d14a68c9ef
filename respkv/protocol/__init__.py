"""Protocol module for respkv."""

from .commands import (
    ArityError,
    Command,
    CommandError,
    CommandType,
    EmptyCommand,
    Reply,
    ReplyType,
)
from .dispatcher import CommandDispatcher
from .parser import (
    DecodeError,
    InvalidArray,
    RequestFramer,
    RespParser,
    UnparsedRemainder,
)

__all__ = [
    "ArityError",
    "Command",
    "CommandDispatcher",
    "CommandError",
    "CommandType",
    "DecodeError",
    "EmptyCommand",
    "InvalidArray",
    "Reply",
    "ReplyType",
    "RequestFramer",
    "RespParser",
    "UnparsedRemainder",
]
