"""
Wire-level protocol implementation.

This module contains the lowest-level communication components:
- FrameDecoder, RawFrame - Byte stream to frames
- EslMessage, EslEvent, CommandResponse - Typed view over a frame
- EslConnection - Command/reply and background job correlation on one socket
- EventDispatcher - Ordered, non-blocking delivery of events to listeners
"""

from .framing import FrameDecoder, RawFrame, DecoderConst
from .message import ContentType, EslMessage, EslEvent, CommandResponse, MessageConst, classify
from .connection import EslConnection, EslStreamProtocol, ConnectionState, ConnectionConst, PendingCommand
from .dispatch import EventDispatcher, DispatchConst

__all__ = [
    "FrameDecoder",
    "RawFrame",
    "DecoderConst",
    "ContentType",
    "EslMessage",
    "EslEvent",
    "CommandResponse",
    "MessageConst",
    "classify",
    "EslConnection",
    "EslStreamProtocol",
    "ConnectionState",
    "ConnectionConst",
    "PendingCommand",
    "EventDispatcher",
    "DispatchConst",
]
