"""
Event Socket wire-level frame decoder.

This module splits the raw TCP byte stream into frames. A frame is a block of
"Name: Value" header lines terminated by a blank line, optionally followed by
exactly Content-Length bytes of body.

Lines end with LF, as the switch writes them. A trailing CR on a header line
is trimmed, but only LF LF ends a header block; CRLF CRLF is not a delimiter.

Terms:
- Frame = One header block plus its optional body, the atomic unit on the wire
- Header block = Everything before the first blank line
- Body = Opaque bytes whose length is given by the Content-Length header

Example usage:
    decoder = FrameDecoder()
    for frame in decoder.feed(b"Content-Type: command/reply\\nReply-Text: +OK\\n\\n"):
        print(frame.header("Reply-Text"))
"""

import time
from dataclasses import dataclass, field
from typing import Iterator, Optional

from ..exceptions import EslFramingError


# Constants
class DecoderConst:
    """Constants for the FrameDecoder"""
    MESSAGE_TERMINATOR = b"\n\n"
    LINE_TERMINATOR = b"\n"
    CONTENT_LENGTH = "Content-Length"
    ENCODING = "utf-8"
    MAX_HEADER_SIZE = 8192
    # Channel data sent in reply to "connect" carries every channel variable
    # in its header block
    OUTBOUND_MAX_HEADER_SIZE = 65536


@dataclass(frozen=True)
class RawFrame:
    """A decoded frame: ordered header entries and an optional body"""
    headers: tuple[tuple[str, str], ...]
    body: Optional[bytes] = None
    timestamp: float = field(default_factory=time.time, compare=False)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value of a header, or default"""
        for key, value in self.headers:
            if key == name:
                return value
        return default

    def header_values(self, name: str) -> list[str]:
        """Return every value of a header in wire order"""
        return [value for key, value in self.headers if key == name]

    def has_header(self, name: str) -> bool:
        return any(key == name for key, _ in self.headers)

    @property
    def content_length(self) -> Optional[int]:
        return len(self.body) if self.body is not None else None

    def encode(self) -> bytes:
        """Serialize back to wire format"""
        block = "".join(f"{key}: {value}\n" for key, value in self.headers).encode(DecoderConst.ENCODING)
        return block + DecoderConst.LINE_TERMINATOR + (self.body or b"")


class FrameDecoder:
    """
    Incremental frame decoder.

    Bytes may be fed in chunks of any size, including one byte at a time;
    frames are byte-identical however the stream is split. Any framing error
    is fatal: the decoder refuses further input once one has been raised.
    """

    def __init__(self, max_header_size: Optional[int] = None, outbound: bool = False):
        self.outbound = outbound
        if max_header_size is None:
            max_header_size = DecoderConst.OUTBOUND_MAX_HEADER_SIZE if outbound else DecoderConst.MAX_HEADER_SIZE
        if max_header_size <= 0:
            raise ValueError("max_header_size must be positive")
        self.max_header_size = max_header_size
        self._buffer = bytearray()
        # Headers of a frame still waiting for its body
        self._headers: Optional[tuple[tuple[str, str], ...]] = None
        self._body_length = 0
        self._failed = False

    @property
    def buffered(self) -> int:
        """Number of bytes received but not yet part of a complete frame"""
        return len(self._buffer)

    def feed(self, data: bytes) -> Iterator[RawFrame]:
        """Append data and return an iterator over every frame now complete"""
        if self._failed:
            raise EslFramingError("Decoder has already failed")
        self._buffer.extend(data)
        return self._drain()

    def _drain(self) -> Iterator[RawFrame]:
        while True:
            try:
                frame = self._next_frame()
            except EslFramingError:
                self._failed = True
                raise
            if frame is None:
                return
            yield frame

    def _next_frame(self) -> Optional[RawFrame]:
        buf = self._buffer

        if self._headers is None:
            # Blank lines between frames are not part of any header block
            skip = 0
            while skip < len(buf) and buf[skip] in b"\r\n":
                skip += 1
            if skip:
                del buf[:skip]

            end = buf.find(DecoderConst.MESSAGE_TERMINATOR)
            if end < 0:
                # The first byte of a split terminator may already be buffered
                if len(buf) > self.max_header_size + len(DecoderConst.MESSAGE_TERMINATOR) - 1:
                    raise EslFramingError(f"Header block exceeds {self.max_header_size} bytes without terminator")
                return None
            if end > self.max_header_size:
                raise EslFramingError(f"Header block of {end} bytes exceeds {self.max_header_size} bytes")

            block = bytes(buf[:end])
            del buf[:end + len(DecoderConst.MESSAGE_TERMINATOR)]
            headers = self._parse_header_block(block)

            length = self._content_length(headers)
            if length is None:
                return RawFrame(headers=headers)
            self._headers = headers
            self._body_length = length

        if len(buf) < self._body_length:
            return None

        body = bytes(buf[:self._body_length])
        del buf[:self._body_length]
        frame = RawFrame(headers=self._headers, body=body)
        self._headers = None
        self._body_length = 0
        return frame

    @staticmethod
    def _parse_header_block(block: bytes) -> tuple[tuple[str, str], ...]:
        headers = []
        for line in block.decode(DecoderConst.ENCODING, errors="replace").split("\n"):
            line = line.rstrip("\r")
            if not line.strip():
                continue
            name, sep, value = line.partition(":")
            if not sep:
                raise EslFramingError(f"Malformed header line: {line!r}")
            headers.append((name.strip(), value.strip()))
        return tuple(headers)

    @staticmethod
    def _content_length(headers: tuple[tuple[str, str], ...]) -> Optional[int]:
        for name, value in headers:
            if name == DecoderConst.CONTENT_LENGTH:
                if not (value.isascii() and value.isdigit()):
                    raise EslFramingError(f"Invalid Content-Length: {value!r}")
                return int(value)
        return None
