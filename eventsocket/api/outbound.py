"""
Outbound Event Socket server.

The switch dials in once per call. Each accepted connection gets its own
OutboundSession and its own handler from handler_factory. The session sends
"connect" immediately; the reply describes the call (channel data) and is
passed to handler.on_connect on a worker task, so the handler may await
further commands while events keep flowing to handler.on_event.

Example usage:
    class Ivr:
        async def on_connect(self, session, channel_data):
            await Execute(session, session.uuid).answer()

    async with OutboundServer(Ivr, port=8084) as server:
        await server.serve_forever()
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol, Self

from ..io import EslConnection, EslStreamProtocol, EslEvent, EslMessage, EventDispatcher
from ..exceptions import EslError, EslConnectionClosedError, EslNotConnectedError
from ..utils import invoke_callback
from .commands import EslCommands
from .types import Const, OutboundState


class OutboundHandler(Protocol):
    """
    Capabilities a per-call handler may provide. Every method is optional and
    may be a plain function or a coroutine function.
    """

    def on_connect(self, session: "OutboundSession", channel_data: EslEvent) -> Any: ...

    def on_event(self, session: "OutboundSession", event: EslEvent) -> Any: ...

    def on_disconnect(self, session: "OutboundSession") -> Any: ...


class OutboundSession(EslCommands):
    """The command handle for one call delivered by the switch"""

    def __init__(self,
                 handler: OutboundHandler,
                 logger: Optional[logging.Logger] = None,
                 print_traffic: bool = False,
                 semaphore: Optional[asyncio.Semaphore] = None,
                 max_workers: int = Const.DEFAULT_MAX_WORKERS):
        self.handler = handler
        self.logger = logger or logging.getLogger(__name__)
        self.state = OutboundState.ACCEPTED
        self.channel_data: Optional[EslEvent] = None

        self.connection = EslConnection(outbound=True, logger=self.logger, print_traffic=print_traffic)
        self.connection.set_callbacks(
            on_open=self._handle_open,
            on_event=self._handle_event,
            on_auth_request=self._handle_auth_request,
            on_close=self._handle_close,
        )
        self.protocol = EslStreamProtocol(self.connection, self.logger)
        self.dispatcher = EventDispatcher(max_workers=max_workers, logger=self.logger, semaphore=semaphore)
        if getattr(handler, "on_event", None) is not None:
            self.dispatcher.add_listener(self._deliver_event)

        self._disconnect_notified = False
        self._tasks: set[asyncio.Task] = set()
        self._done = asyncio.Event()

    @property
    def uuid(self) -> Optional[str]:
        """Unique-ID of the call, known once the handshake has completed"""
        return self.channel_data.unique_id if self.channel_data else None

    @property
    def peer(self) -> Optional[tuple]:
        return self.connection.peer

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ============================
    # HANDSHAKE
    # ============================

    def _handle_open(self) -> None:
        self.state = OutboundState.CONNECTING_HANDSHAKE
        try:
            reply = self.connection.send_command(self.CMD["CONNECT"])
        except EslError as e:
            self._fail(e)
            return
        self._spawn(self._complete_handshake(reply))

    async def _complete_handshake(self, reply: asyncio.Future) -> None:
        try:
            message: EslMessage = await reply
        except EslError as e:
            self.logger.error(f"Outbound handshake with {self.peer} failed: {e}")
            self._fail(e)
            return
        self.channel_data = EslEvent.from_channel_data(message)
        self.state = OutboundState.READY
        self.connection.mark_ready()
        self.logger.info(f"Outbound session {self.uuid} ready from {self.peer}")
        on_connect = getattr(self.handler, "on_connect", None)
        if on_connect is not None:
            await invoke_callback(on_connect, self, self.channel_data, logger=self.logger)

    def _fail(self, exc: BaseException) -> None:
        self.state = OutboundState.FAILED
        self.connection.fail(exc)
        self._notify_disconnect()

    # ============================
    # INBOUND TRAFFIC
    # ============================

    def _handle_event(self, event: EslEvent) -> None:
        self.dispatcher.dispatch(event)

    def _deliver_event(self, event: EslEvent) -> Any:
        return self.handler.on_event(self, event)

    def _handle_auth_request(self, message: EslMessage) -> None:
        self.logger.warning(f"Ignoring auth/request on outbound connection from {self.peer}")

    def _handle_close(self, exc: Optional[BaseException]) -> None:
        if self.state is not OutboundState.FAILED:
            self.state = OutboundState.FAILED if exc is not None else OutboundState.CLOSED
        self.logger.info(f"Outbound session {self.uuid} closed")
        self._notify_disconnect()

    def _notify_disconnect(self) -> None:
        if self._disconnect_notified:
            return
        self._disconnect_notified = True
        self._spawn(self._finish())

    async def _finish(self) -> None:
        # Events already queued reach on_event before on_disconnect
        await self.dispatcher.aclose()
        on_disconnect = getattr(self.handler, "on_disconnect", None)
        if on_disconnect is not None:
            await invoke_callback(on_disconnect, self, logger=self.logger)
        self._done.set()

    # ============================
    # COMMANDS
    # ============================

    def _ready_connection(self) -> EslConnection:
        if self.state is OutboundState.READY:
            return self.connection
        if self.state in (OutboundState.FAILED, OutboundState.CLOSED):
            raise EslConnectionClosedError(f"Session is {self.state.value}")
        raise EslNotConnectedError("Session handshake has not completed")

    def can_send(self) -> bool:
        return self.state is OutboundState.READY and self.connection.is_connected()

    async def myevents(self) -> Any:
        """Subscribe to every event of this call"""
        return await self.command(self.CMD["MYEVENTS"])

    async def linger(self, seconds: Optional[int] = None) -> Any:
        """Keep the socket open after hangup so remaining events are delivered"""
        return await self.command(f"{self.CMD['LINGER']} {seconds}" if seconds else self.CMD["LINGER"])

    async def nolinger(self) -> Any:
        return await self.command(self.CMD["NOLINGER"])

    async def divert_events(self, on: bool = True) -> Any:
        return await self.command(f"{self.CMD['DIVERT_EVENTS']} {'on' if on else 'off'}")

    async def resume(self) -> Any:
        """Continue the dialplan when this socket closes"""
        return await self.command(self.CMD["RESUME"])

    async def close(self) -> None:
        await self.connection.close()

    async def wait_closed(self) -> None:
        """Wait until the call has ended and on_disconnect has run"""
        await self._done.wait()


class OutboundServer:

    def __init__(self,
                 handler_factory: Callable[[], OutboundHandler],
                 host: str = Const.DEFAULT_HOST,
                 port: int = Const.DEFAULT_OUTBOUND_PORT,
                 logger: Optional[logging.Logger] = None,
                 max_workers: int = Const.DEFAULT_MAX_WORKERS,
                 print_traffic: bool = False):
        self.handler_factory = handler_factory
        self.host = host
        self.port = port
        self.logger = logger or logging.getLogger(__name__)
        self.max_workers = max_workers
        self.print_traffic = print_traffic
        self.sessions: set[OutboundSession] = set()
        self._server: Optional[asyncio.AbstractServer] = None
        self._semaphore: Optional[asyncio.Semaphore] = None

    @classmethod
    async def create(cls, handler_factory: Callable[[], OutboundHandler], **kwargs) -> Self:
        """Create a server and start listening"""
        self = cls(handler_factory, **kwargs)
        await self.start()
        return self

    async def __aenter__(self):
        if self._server is None:
            await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port, useful when port 0 was requested"""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        if self.is_serving():
            self.logger.warning("Outbound server already running")
            return
        self._semaphore = asyncio.Semaphore(self.max_workers)
        self._server = await asyncio.get_running_loop().create_server(self._accept, self.host, self.port)
        self.logger.info(f"Outbound server listening on {self.host}:{self.bound_port}")

    def _accept(self) -> EslStreamProtocol:
        session = OutboundSession(
            self.handler_factory(),
            logger=self.logger,
            print_traffic=self.print_traffic,
            semaphore=self._semaphore,
            max_workers=self.max_workers,
        )
        self.sessions.add(session)
        session._spawn(self._forget(session))
        return session.protocol

    async def _forget(self, session: OutboundSession) -> None:
        await session.wait_closed()
        self.sessions.discard(session)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    async def stop(self) -> None:
        """Stop accepting calls and close every open session"""
        if self._server is None:
            return
        self._server.close()
        for session in list(self.sessions):
            await session.close()
        await self._server.wait_closed()
        self._server = None
        self.logger.info("Outbound server stopped")
