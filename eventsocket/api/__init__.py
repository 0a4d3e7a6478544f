"""
Connection lifecycles and the command API.

This module contains the components that sit on top of the wire layer:
- EslCommands (the command set shared by both connection roles)
- InboundClient (dial the switch and authenticate)
- OutboundServer, OutboundSession (the switch dials in, one session per call)
- SendMsg and the state/format enums used by the API layer
"""

from .commands import EslCommands
from .inbound import InboundClient
from .outbound import OutboundServer, OutboundSession, OutboundHandler
from .models import SendMsg
from .types import Const, InboundState, OutboundState, EventFormat, LoggingLevel

__all__ = [
    "EslCommands",
    "InboundClient",
    "OutboundServer",
    "OutboundSession",
    "OutboundHandler",
    "SendMsg",
    "Const",
    "InboundState",
    "OutboundState",
    "EventFormat",
    "LoggingLevel",
]
