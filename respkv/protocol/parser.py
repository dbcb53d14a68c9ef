"""
RESP Protocol Parser Module

This module handles decoding of client requests and encoding of replies
for the subset of RESP (REdis Serialization Protocol) the server speaks.

Requests are arrays of bulk strings:
    *2\\r\\n$3\\r\\nGET\\r\\n$3\\r\\nfoo\\r\\n  ->  ["GET", "foo"]

Lengths are trusted: the parser never scans a payload for terminators,
it jumps straight to the offset the length field declares.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from .commands import ENCODING, ENCODING_ERRORS, Reply

logger = logging.getLogger(__name__)

CRLF = b"\r\n"
# Longest "$<length>\r\n" or "*<count>\r\n" line accepted, sign and 20 digits fit easily
MAX_HEADER_LENGTH = 32

# Signed decimal integer, nothing else (int() would also accept " 5" or "1_0")
INTEGER_RE = re.compile(rb"-?[0-9]+")


class DecodeError(Exception):
    """Base class for malformed request framing."""


class InvalidArray(DecodeError):
    """The request is not a well-formed RESP array header."""


class UnparsedRemainder(DecodeError):
    """The array elements do not match the declared count, or bytes are left over."""


def _parse_int(raw: bytes) -> Optional[int]:
    if INTEGER_RE.fullmatch(raw) is None:
        return None
    return int(raw)


class RespParser:
    """
    Parser for RESP requests and replies.

    Decoding is stateless: every method takes the bytes to inspect and
    returns a result or raises a DecodeError, nothing is kept between calls.

    Methods:
        parse_request(data)    -> list of strings for one complete request
        frame_length(buffer)   -> size of the first complete request, if any
        encode_request(args)   -> request bytes for a command (client side)
        format_response(reply) -> reply bytes
    """

    def parse_request(self, data: bytes) -> List[str]:
        """
        Decode one request into its command name and arguments.

        Args:
            data: Exactly one request frame

        Returns:
            The decoded strings, in order.

        Raises:
            InvalidArray: Missing '*' marker or unreadable element count
            UnparsedRemainder: Fewer elements than declared, a malformed
                bulk string, or trailing bytes after the last element

        Examples:
            >>> RespParser().parse_request(b"*2\\r\\n$5\\r\\nhello\\r\\n$5\\r\\nworld\\r\\n")
            ['hello', 'world']
        """
        header = self._parse_array_header(data)
        if header is None:
            raise InvalidArray("array header is not terminated")
        count, offset = header

        elements: List[str] = []
        while len(elements) < count and offset < len(data):
            span = self._scan_bulk_string(data, offset)
            if span is None:
                raise UnparsedRemainder(f"truncated bulk string at offset {offset}")
            start, end = span
            elements.append(data[start:end].decode(ENCODING, ENCODING_ERRORS))
            offset = end + len(CRLF)

        if len(elements) != count:
            raise UnparsedRemainder(f"expected {count} elements, parsed {len(elements)}")
        if offset != len(data):
            raise UnparsedRemainder(f"{len(data) - offset} unparsed bytes after array")

        logger.debug(f"Parsed request: {elements!r}")
        return elements

    def frame_length(self, buffer: bytes) -> Optional[int]:
        """
        Find the end of the first complete request in a read buffer.

        Args:
            buffer: Bytes received so far on a connection

        Returns:
            The length in bytes of the first request frame, or None if
            the buffer does not yet hold a complete request.

        Raises:
            InvalidArray / UnparsedRemainder as soon as the bytes already
            received cannot be the start of a valid request.
        """
        return RequestFramer(self).next_frame(buffer)

    def encode_request(self, args: Sequence[str]) -> bytes:
        """
        Encode a command as an array of bulk strings.

        Examples:
            >>> RespParser().encode_request(["GET", "foo"])
            b'*2\\r\\n$3\\r\\nGET\\r\\n$3\\r\\nfoo\\r\\n'
        """
        parts = [b"*%d\r\n" % len(args)]
        parts.extend(Reply.bulk_string(arg).serialize() for arg in args)
        return b"".join(parts)

    def format_response(self, reply: Reply) -> bytes:
        """Encode a Reply into wire bytes."""
        return reply.serialize()

    def _find_line_end(self, data: bytes, offset: int) -> int:
        """Index of the CRLF ending the header line at offset, or -1 if not yet received."""
        return data.find(CRLF, offset, offset + MAX_HEADER_LENGTH)

    def _parse_array_header(self, data: bytes) -> Optional[Tuple[int, int]]:
        """
        Read the '*<count>\\r\\n' header.

        Returns:
            (count, offset of first element), or None if the header
            terminator has not been received.
        """
        if data[:1] != b"*":
            raise InvalidArray("request does not start with '*'")

        header_end = self._find_line_end(data, 0)
        if header_end == -1:
            if len(data) >= MAX_HEADER_LENGTH:
                raise InvalidArray("array header is too long")
            return None

        count = _parse_int(data[1:header_end])
        if count is None or count < 0:
            raise InvalidArray(f"invalid array length {bytes(data[1:header_end])!r}")

        return count, header_end + len(CRLF)

    def _scan_bulk_header(self, data: bytes, offset: int) -> Optional[Tuple[int, int]]:
        """
        Read the '$<length>\\r\\n' header of the bulk string at offset.

        Returns:
            (payload start, payload end) as declared by the header, or
            None if the header terminator has not been received. The
            payload itself may not have arrived yet.
        """
        if data[offset:offset + 1] != b"$":
            raise UnparsedRemainder(f"expected '$' at offset {offset}")

        header_end = self._find_line_end(data, offset)
        if header_end == -1:
            if len(data) - offset >= MAX_HEADER_LENGTH:
                raise UnparsedRemainder(f"bulk string header at offset {offset} is too long")
            return None

        length = _parse_int(data[offset + 1:header_end])
        if length is None or length < 0:
            raise UnparsedRemainder(f"invalid bulk string length {bytes(data[offset + 1:header_end])!r}")

        start = header_end + len(CRLF)
        return start, start + length

    def _check_terminator(self, data: bytes, offset: int, end: int) -> None:
        if data[end:end + len(CRLF)] != CRLF:
            raise UnparsedRemainder(f"bulk string at offset {offset} does not match its declared length")

    def _scan_bulk_string(self, data: bytes, offset: int) -> Optional[Tuple[int, int]]:
        """
        Locate the payload of the bulk string starting at offset.

        Returns:
            (payload start, payload end), or None if data ends before
            the bulk string does.
        """
        span = self._scan_bulk_header(data, offset)
        if span is None:
            return None

        start, end = span
        if len(data) < end + len(CRLF):
            return None
        self._check_terminator(data, offset, end)

        return start, end


class RequestFramer:
    """
    Locates request boundaries in one connection's growing read buffer.

    Progress through the request at the front of the buffer is kept
    between calls, so each element header is examined once and a large
    payload is not looked at again until all of its bytes have arrived.
    Call reset() after the frame returned by next_frame() has been
    removed from the buffer.

    Usage:
        framer = RequestFramer(parser)
        buffer += data
        frame_end = framer.next_frame(buffer)
        if frame_end is not None:
            frame = bytes(buffer[:frame_end])
            del buffer[:frame_end]
            framer.reset()
    """

    def __init__(self, parser: RespParser):
        self.parser = parser
        self.reset()

    def reset(self) -> None:
        """Forget all progress; the next request starts at offset 0."""
        self._remaining: Optional[int] = None
        self._offset = 0
        self._needed = 1

    def next_frame(self, buffer: bytes) -> Optional[int]:
        """
        Continue scanning the request at the front of the buffer.

        Args:
            buffer: All bytes received since the last reset(); it may
                only have grown since the previous call

        Returns:
            The length of the complete request frame, or None if more
            bytes are needed.

        Raises:
            InvalidArray / UnparsedRemainder as soon as the bytes already
            received cannot be the start of a valid request.
        """
        if len(buffer) < self._needed:
            return None

        if self._remaining is None:
            header = self.parser._parse_array_header(buffer)
            if header is None:
                self._needed = len(buffer) + 1
                return None
            self._remaining, self._offset = header

        while self._remaining:
            if self._offset >= len(buffer):
                self._needed = self._offset + 1
                return None

            span = self.parser._scan_bulk_header(buffer, self._offset)
            if span is None:
                self._needed = len(buffer) + 1
                return None

            end = span[1]
            if len(buffer) < end + len(CRLF):
                self._needed = end + len(CRLF)
                return None
            self.parser._check_terminator(buffer, self._offset, end)

            self._offset = end + len(CRLF)
            self._remaining -= 1

        return self._offset
