"""
eventsocket Python Library

A Python library for controlling a telephony switch over its Event Socket
interface, in both connection roles.

This library provides three distinct layers of abstraction:

1. **io**: Wire-level protocol implementation (framing, message model, command/reply correlation, event dispatch)
2. **api**: Connection lifecycles and the command API using io (inbound client, outbound server)
3. **interface**: Call control using api (dialplan applications on a channel)

Example usage:
    import eventsocket

    # Inbound: dial the switch and authenticate
    async with await eventsocket.InboundClient.create("127.0.0.1", 8021, "ClueCon") as client:
        reply = await client.api("status")
        job = await client.bgapi("originate", "user/1000 &park")
        print(job.body_lines)

    # Outbound: the switch dials in once per call
    class Ivr:
        async def on_connect(self, session, channel_data):
            call = eventsocket.Execute(session, session.uuid)
            await call.answer()
            await call.playback("ivr/ivr-welcome.wav")

    async with eventsocket.OutboundServer(Ivr, port=8084) as server:
        await server.serve_forever()
"""

# High-level interface
from .interface import Execute

# API-level lifecycles and models
from .api import InboundClient, OutboundServer, OutboundSession, OutboundHandler, EslCommands, SendMsg

# Low-level models
from .io import (
    FrameDecoder,
    RawFrame,
    ContentType,
    EslMessage,
    EslEvent,
    CommandResponse,
    EslConnection,
    ConnectionState,
    EventDispatcher,
    classify,
)

# Shared types and exceptions
from .api.types import InboundState, OutboundState, EventFormat, LoggingLevel
from .exceptions import (
    EslError,
    EslFramingError,
    EslClassificationError,
    EslProtocolViolation,
    EslConnectionError,
    EslConnectError,
    EslAuthenticationError,
    EslConnectionClosedError,
    EslNotConnectedError,
    EslTimeoutError,
    EslConfigurationError,
    ExecuteError,
)

# Utilities
from .config import EslConfig, setup_logging
from .utils import run_with_keyboard_interrupt

__version__ = "0.1.0"

# Public API - these are the main classes users should import
__all__ = [
    # High-level interface
    "Execute",

    # API-level
    "InboundClient",
    "OutboundServer",
    "OutboundSession",
    "OutboundHandler",
    "EslCommands",
    "SendMsg",

    # Low-level models (for advanced users)
    "FrameDecoder",
    "RawFrame",
    "ContentType",
    "EslMessage",
    "EslEvent",
    "CommandResponse",
    "EslConnection",
    "ConnectionState",
    "EventDispatcher",
    "classify",

    # Exceptions
    "EslError",
    "EslFramingError",
    "EslClassificationError",
    "EslProtocolViolation",
    "EslConnectionError",
    "EslConnectError",
    "EslAuthenticationError",
    "EslConnectionClosedError",
    "EslNotConnectedError",
    "EslTimeoutError",
    "EslConfigurationError",
    "ExecuteError",

    # Types and enums
    "InboundState",
    "OutboundState",
    "EventFormat",
    "LoggingLevel",

    # Utilities
    "EslConfig",
    "setup_logging",
    "run_with_keyboard_interrupt",
]
