"""
Event Socket connection and correlation engine.

This module owns one TCP connection. It decodes incoming frames and matches
them back to the commands that caused them:

- Command replies (command/reply, api/response) resolve pending commands in
  FIFO order. The wire carries no correlation id.
- Background jobs are keyed by the Job-UUID revealed in the bgapi reply, and
  resolved by the BACKGROUND_JOB event that repeats it.
- All other events are handed to the on_event callback.

Terms:
- Command = A single line (or block of lines) written to the switch
- Reply = The command/reply or api/response frame answering a command
- Job = A bgapi command whose result arrives later as an event

Example usage:
    connection = EslConnection()
    transport, _ = await loop.create_connection(lambda: EslStreamProtocol(connection), host, port)
    reply = await connection.send_command("api status")
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from colorama import Fore, Style

from .framing import FrameDecoder
from .message import ContentType, EslEvent, EslMessage, MessageConst, classify
from ..exceptions import (
    EslError,
    EslConnectError,
    EslConnectionClosedError,
    EslNotConnectedError,
    EslProtocolViolation,
)


# Constants
class ConnectionConst:
    """Constants for the EslConnection"""
    MESSAGE_TERMINATOR = "\n\n"
    LINE_TERMINATOR = "\n"
    ENCODING = "utf-8"
    SECRET_COMMANDS = ("auth ", "userauth ")


class ConnectionState(Enum):
    """Lifecycle of one connection"""
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ConnectionState.CLOSING, ConnectionState.CLOSED, ConnectionState.FAILED)


@dataclass
class PendingCommand:
    """A slot waiting for the next reply in FIFO order"""
    command: str
    future: asyncio.Future
    # Background commands resolve their future from the completion event
    background: bool = False
    timestamp: float = field(default_factory=time.time)


def redact(command: str) -> str:
    """Hide the secret in auth commands before they are logged or printed"""
    for prefix in ConnectionConst.SECRET_COMMANDS:
        if command.startswith(prefix):
            return prefix + "********"
    return command


class EslStreamProtocol(asyncio.Protocol):
    def __init__(self, connection: "EslConnection", logger: Optional[logging.Logger] = None):
        self.connection = connection
        self.logger = logger or logging.getLogger(__name__)

    def connection_made(self, transport):
        self.connection.connection_made(transport)

    def data_received(self, data):
        self.connection.data_received(data)

    def eof_received(self):
        self.logger.debug("Peer closed its side of the connection")
        return False

    def connection_lost(self, exc):
        if exc:
            self.logger.error(f"Event socket connection lost: {exc}")
        else:
            self.logger.info("Event socket connection closed")
        self.connection.connection_lost(exc)


class EslConnection:
    """
    Correlation engine for one Event Socket connection.

    Invariants:
    - A command is queued before its bytes are written, with no await between.
    - Every queued command and registered job is resolved exactly once,
      either by the switch or with EslConnectionClosedError on close/failure.
    - A cancelled caller future still consumes its reply, keeping the FIFO
      aligned; the reply is discarded.
    """

    def __init__(self,
                 outbound: bool = False,
                 logger: Optional[logging.Logger] = None,
                 print_traffic: bool = False,
                 max_header_size: Optional[int] = None):
        self.outbound = outbound
        self.logger = logger or logging.getLogger(__name__)
        self.print_traffic = print_traffic
        self.state = ConnectionState.CONNECTING
        self.peer: Optional[tuple] = None

        self._decoder = FrameDecoder(max_header_size, outbound=outbound)
        self._transport: Optional[asyncio.Transport] = None
        self._pending: deque[PendingCommand] = deque()
        self._jobs: dict[str, asyncio.Future] = {}
        self._closed = asyncio.Event()
        self._close_notified = False

        # Callbacks
        self.on_open: Optional[Callable[[], None]] = None
        self.on_event: Optional[Callable[[EslEvent], None]] = None
        self.on_auth_request: Optional[Callable[[EslMessage], None]] = None
        self.on_rude_rejection: Optional[Callable[[EslMessage], None]] = None
        self.on_close: Optional[Callable[[Optional[BaseException]], None]] = None

    def set_callbacks(self,
                      on_open: Optional[Callable[[], None]] = None,
                      on_event: Optional[Callable[[EslEvent], None]] = None,
                      on_auth_request: Optional[Callable[[EslMessage], None]] = None,
                      on_rude_rejection: Optional[Callable[[EslMessage], None]] = None,
                      on_close: Optional[Callable[[Optional[BaseException]], None]] = None):
        self.on_open = on_open
        self.on_event = on_event
        self.on_auth_request = on_auth_request
        self.on_rude_rejection = on_rude_rejection
        self.on_close = on_close

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    def is_connected(self) -> bool:
        return self.state in (ConnectionState.HANDSHAKING, ConnectionState.READY)

    def mark_ready(self) -> None:
        """Called by the owning lifecycle once its handshake has succeeded"""
        if self.state is ConnectionState.HANDSHAKING:
            self.state = ConnectionState.READY

    # ============================
    # TRANSPORT EVENTS
    # ============================

    def connection_made(self, transport: asyncio.Transport) -> None:
        self._transport = transport
        self.peer = transport.get_extra_info("peername")
        self.state = ConnectionState.HANDSHAKING
        self.logger.info(f"Event socket connected to {self.peer}")
        if self.on_open:
            self.on_open()

    def data_received(self, data: bytes) -> None:
        if self.state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            return
        try:
            for frame in self._decoder.feed(data):
                message = classify(frame)
                self._print_received(message)
                self._route(message)
                if self.state in (ConnectionState.CLOSED, ConnectionState.FAILED):
                    break
        except EslError as e:
            self.logger.error(f"Fatal protocol error from {self.peer}: {e}")
            self.fail(e)

    def connection_lost(self, exc: Optional[BaseException]) -> None:
        self._transport = None
        if self.state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            self._closed.set()
            return
        if exc is not None:
            self.state = ConnectionState.FAILED
        else:
            self.state = ConnectionState.CLOSED
        self._fail_outstanding("Connection lost", exc)
        self._closed.set()
        self._notify_close(exc)

    # ============================
    # COMMAND SENDING
    # ============================

    def send_command(self, command: str) -> asyncio.Future:
        """Write a single-line command; the future resolves with its reply"""
        if not command or "\n" in command:
            raise ValueError("Command must be a single non-empty line, use send_multiline_command")
        payload = command + ConnectionConst.MESSAGE_TERMINATOR
        return self._enqueue_and_write(command, payload)

    def send_multiline_command(self, lines: Iterable[str]) -> asyncio.Future:
        """Write each line followed by a newline, then a blank line"""
        lines = list(lines)
        if not lines:
            raise ValueError("Multi-line command needs at least one line")
        for line in lines:
            if not line or "\n" in line:
                raise ValueError(f"Invalid command line: {line!r}")
        payload = "".join(line + ConnectionConst.LINE_TERMINATOR for line in lines) + ConnectionConst.LINE_TERMINATOR
        return self._enqueue_and_write(lines[0], payload)

    def send_background_command(self, command: str) -> asyncio.Future:
        """
        Write a bgapi command. The returned future resolves with the
        BACKGROUND_JOB event whose Job-UUID matches the one in the reply.
        """
        if not command or "\n" in command:
            raise ValueError("Command must be a single non-empty line")
        payload = command + ConnectionConst.MESSAGE_TERMINATOR
        return self._enqueue_and_write(command, payload, background=True)

    def _enqueue_and_write(self, command: str, payload: str, background: bool = False) -> asyncio.Future:
        self._check_writable()
        future = asyncio.get_running_loop().create_future()
        # No await between these two statements
        self._pending.append(PendingCommand(command=command, future=future, background=background))
        self._transport.write(payload.encode(ConnectionConst.ENCODING))
        self.logger.debug(f"Sent command: {redact(command)}")
        self._print_sent(command)
        return future

    def _check_writable(self) -> None:
        if self.state.is_terminal:
            raise EslConnectionClosedError(f"Connection is {self.state.value}")
        if self._transport is None or self.state is ConnectionState.CONNECTING:
            raise EslNotConnectedError("Connection is not established")
        if self._transport.is_closing():
            raise EslConnectionClosedError("Transport is closing")

    # ============================
    # ROUTING
    # ============================

    def _route(self, message: EslMessage) -> None:
        content_type = message.content_type
        if content_type.is_event:
            if message.event_name == MessageConst.BACKGROUND_JOB:
                self._complete_job(message)
            else:
                self._emit_event(message)
        elif content_type.is_reply:
            self._resolve_reply(message)
        elif content_type is ContentType.AUTH_REQUEST:
            if self.on_auth_request:
                self.on_auth_request(message)
            else:
                self.logger.warning("Ignoring unexpected auth/request")
        elif content_type is ContentType.DISCONNECT_NOTICE:
            self._handle_disconnect_notice(message)
        elif content_type is ContentType.RUDE_REJECTION:
            self.logger.error(f"Connection rejected by {self.peer}: {message.body_text.strip()}")
            if self.on_rude_rejection:
                self.on_rude_rejection(message)
            self.fail(EslConnectError(f"Connection rejected: {message.body_text.strip()}"))

    def _resolve_reply(self, message: EslMessage) -> None:
        if not self._pending:
            raise EslProtocolViolation(f"Received {message.content_type.value} with no command awaiting a reply")
        pending = self._pending.popleft()
        self.logger.debug(f"Reply to {redact(pending.command)}: {message.reply_text}")
        if pending.background:
            self._register_job(pending, message)
        elif not pending.future.done():
            pending.future.set_result(message)
        else:
            self.logger.debug(f"Discarding reply to abandoned command {redact(pending.command)}")

    def _register_job(self, pending: PendingCommand, message: EslMessage) -> None:
        # Registered while routing the reply so a completion event in the same
        # read is already matched
        if pending.future.done():
            self.logger.debug(f"Discarding reply to abandoned background command {pending.command}")
            return
        job_uuid = message.job_uuid
        if not job_uuid:
            pending.future.set_exception(EslProtocolViolation(
                f"Missing Job-UUID header in bgapi response: {message.reply_text}"))
            return
        self._jobs[job_uuid] = pending.future

    def _complete_job(self, event: EslEvent) -> None:
        job_uuid = event.job_uuid
        future = self._jobs.pop(job_uuid, None) if job_uuid else None
        if future is None:
            self.logger.debug(f"Dropping BACKGROUND_JOB for unknown job {job_uuid}")
            return
        if not future.done():
            future.set_result(event)

    def _emit_event(self, event: EslEvent) -> None:
        self.logger.debug(f"Event received: {event.event_name}")
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception:
            self.logger.exception(f"Event handoff failed for {event.event_name}")

    def _handle_disconnect_notice(self, message: EslMessage) -> None:
        self.logger.info(f"Disconnect notice from {self.peer}: {message.body_text.strip()}")
        self.state = ConnectionState.CLOSING
        self._fail_outstanding("Disconnect notice received", None)
        if message.header(MessageConst.CONTENT_DISPOSITION) == MessageConst.DISPOSITION_LINGER:
            # Events keep flowing until the switch closes the socket
            self.logger.debug(f"Lingering on {self.peer} until the switch hangs up")
            return
        self._close_transport()
        self.state = ConnectionState.CLOSED
        self._notify_close(None)

    # ============================
    # SHUTDOWN
    # ============================

    def fail(self, exc: BaseException) -> None:
        """Move to FAILED, resolve everything outstanding and drop the socket"""
        if self.state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            return
        self.state = ConnectionState.FAILED
        self._fail_outstanding(f"Connection failed: {exc}", exc)
        self._close_transport()
        self._notify_close(exc)

    async def close(self) -> None:
        """Close the connection locally and wait for the transport to go away"""
        if self.state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            return
        self.state = ConnectionState.CLOSING
        self._fail_outstanding("Connection closed", None)
        had_transport = self._transport is not None
        self._close_transport()
        self.state = ConnectionState.CLOSED
        if had_transport:
            await self._closed.wait()
        self._notify_close(None)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def _close_transport(self) -> None:
        if self._transport is not None and not self._transport.is_closing():
            self._transport.close()
        if self._transport is None:
            self._closed.set()

    def _fail_outstanding(self, reason: str, cause: Optional[BaseException]) -> None:
        pending, self._pending = self._pending, deque()
        jobs, self._jobs = self._jobs, {}
        for slot in pending:
            self._set_closed(slot.future, reason, cause)
        for future in jobs.values():
            self._set_closed(future, reason, cause)
        if pending or jobs:
            self.logger.debug(f"Resolved {len(pending)} pending commands and {len(jobs)} jobs: {reason}")

    @staticmethod
    def _set_closed(future: asyncio.Future, reason: str, cause: Optional[BaseException]) -> None:
        if future.done():
            return
        error = EslConnectionClosedError(reason)
        error.__cause__ = cause
        future.set_exception(error)

    def _notify_close(self, exc: Optional[BaseException]) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        if self.on_close is None:
            return
        try:
            self.on_close(exc)
        except Exception:
            self.logger.exception("Close callback failed")

    # ============================
    # TRAFFIC PRINTING
    # ============================

    def _print_sent(self, command: str) -> None:
        if self.print_traffic:
            print(Fore.MAGENTA + "SEND: " + Style.BRIGHT + Fore.CYAN + redact(command) + Style.RESET_ALL)

    def _print_received(self, message: EslMessage) -> None:
        if not self.print_traffic:
            return
        if isinstance(message, EslEvent):
            summary = f"{message.event_name}"
        else:
            summary = message.reply_text or ""
        print(Fore.MAGENTA + f"RECV: {message.content_type.value}  "
              + Fore.WHITE + Style.DIM + f"{len(message.frame.headers)} headers, {len(message.body or b'')} bytes"
              + Style.BRIGHT + Fore.CYAN + f"  {summary}" + Style.RESET_ALL)
