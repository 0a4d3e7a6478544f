import asyncio
from typing import Iterable, Optional

from ..io import EslConnection, EslMessage, CommandResponse
from .models import SendMsg
from .types import Const, EventFormat, LoggingLevel

"""
===================================================================================
Command API shared by inbound clients and outbound sessions.
===================================================================================
"""


class EslCommands:
    """
    Mixin implementing the Event Socket command set on top of a ready
    EslConnection. Subclasses provide _ready_connection(), which returns the
    connection or raises when commands are not allowed in the current state.
    """

    # Define commands as a dictionary
    CMD: dict[str, str] = {
        "API": "api",                       # Blocking API command, result in body
        "BGAPI": "bgapi",                   # Background API command, result in BACKGROUND_JOB
        "EVENT": "event",                   # Subscribe to events in a format
        "NOEVENTS": "noevents",             # Cancel all event subscriptions
        "NIXEVENT": "nixevent",             # Cancel some event subscriptions
        "FILTER": "filter",                 # Add an event filter
        "FILTER_DELETE": "filter delete",   # Remove an event filter
        "SENDMSG": "sendmsg",               # Send a message to a channel
        "LOG": "log",                       # Receive log lines at a level
        "NOLOG": "nolog",                   # Stop receiving log lines
        "EXIT": "exit",                     # Ask the switch to close the socket
        "AUTH": "auth",                     # Inbound authentication
        # Outbound only
        "CONNECT": "connect",               # Outbound handshake, reply carries channel data
        "MYEVENTS": "myevents",             # Subscribe to this channel's events
        "LINGER": "linger",                 # Keep socket open after hangup
        "NOLINGER": "nolinger",             # Close socket on hangup
        "DIVERT_EVENTS": "divert_events",   # Divert events from embedded scripts
        "RESUME": "resume",                 # Resume dialplan when the socket closes
    }

    def _ready_connection(self) -> EslConnection:
        raise NotImplementedError

    # ============================
    # RAW COMMANDS
    # ============================

    def send_command(self, command: str) -> asyncio.Future:
        return self._ready_connection().send_command(command)

    def send_multiline_command(self, lines: Iterable[str]) -> asyncio.Future:
        return self._ready_connection().send_multiline_command(lines)

    def send_background_command(self, command: str) -> asyncio.Future:
        return self._ready_connection().send_background_command(command)

    async def command(self, command: str) -> CommandResponse:
        """Send a command and wrap its reply"""
        message = await self.send_command(command)
        return CommandResponse(command, message)

    # ============================
    # API
    # ============================

    @staticmethod
    def _join(command: str, arg: Optional[str]) -> str:
        command = command.strip()
        if not command:
            raise ValueError("API command must not be empty")
        return f"{command} {arg}" if arg else command

    async def api(self, command: str, arg: Optional[str] = None) -> EslMessage:
        """Run a blocking API command; the result is the message body"""
        return await self.send_command(f"{self.CMD['API']} {self._join(command, arg)}")

    def bgapi(self, command: str, arg: Optional[str] = None) -> asyncio.Future:
        """Run a background API command; await the future for the BACKGROUND_JOB event"""
        return self.send_background_command(f"{self.CMD['BGAPI']} {self._join(command, arg)}")

    async def get_variable(self, uuid: str, name: str) -> Optional[str]:
        """Read one channel variable with uuid_getvar, None when unset"""
        message = await self.api("uuid_getvar", f"{uuid} {name}")
        lines = message.body_lines
        if not lines:
            return None
        value = lines[0]
        if value == Const.UNDEFINED_VARIABLE or value.startswith("-ERR"):
            return None
        return value

    # ============================
    # EVENTS AND FILTERS
    # ============================

    async def set_event_subscriptions(self,
                                      format: EventFormat | str = EventFormat.PLAIN,
                                      events: str | Iterable[str] = Const.ALL_EVENTS) -> CommandResponse:
        fmt = EventFormat(format)
        names = events if isinstance(events, str) else " ".join(events)
        if not names.strip():
            raise ValueError("No events to subscribe to")
        return await self.command(f"{self.CMD['EVENT']} {fmt.value} {names}")

    async def cancel_event_subscriptions(self, events: Optional[str | Iterable[str]] = None) -> CommandResponse:
        """Cancel every subscription, or only the named events"""
        if events is None:
            return await self.command(self.CMD["NOEVENTS"])
        names = events if isinstance(events, str) else " ".join(events)
        return await self.command(f"{self.CMD['NIXEVENT']} {names}")

    async def add_event_filter(self, header: str, value: str) -> CommandResponse:
        return await self.command(f"{self.CMD['FILTER']} {header} {value}")

    async def delete_event_filter(self, header: str, value: Optional[str] = None) -> CommandResponse:
        if value is None:
            return await self.command(f"{self.CMD['FILTER_DELETE']} {header}")
        return await self.command(f"{self.CMD['FILTER_DELETE']} {header} {value}")

    # ============================
    # MESSAGES AND LOGGING
    # ============================

    async def send_message(self, message: SendMsg) -> CommandResponse:
        lines = message.to_lines()
        reply = await self.send_multiline_command(lines)
        return CommandResponse(lines[0], reply)

    async def set_logging_level(self, level: LoggingLevel | str | int = LoggingLevel.INFO) -> CommandResponse:
        if isinstance(level, LoggingLevel):
            level = level.value
        elif isinstance(level, int):
            if not 0 <= level <= 7:
                raise ValueError("Numeric log level must be between 0 and 7")
        else:
            level = LoggingLevel(level).value
        return await self.command(f"{self.CMD['LOG']} {level}")

    async def cancel_logging(self) -> CommandResponse:
        return await self.command(self.CMD["NOLOG"])

    async def exit(self) -> CommandResponse:
        return await self.command(self.CMD["EXIT"])
