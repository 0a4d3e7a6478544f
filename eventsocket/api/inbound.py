"""
Inbound Event Socket client.

The client dials the switch, waits for its auth/request, authenticates with
"auth <password>" and then accepts commands. Events the client subscribes to
are fanned out to listeners registered with add_event_listener().

Example usage:
    async with await InboundClient.create("127.0.0.1", 8021, "ClueCon") as client:
        client.add_event_listener(print, "CHANNEL_ANSWER")
        await client.set_event_subscriptions(EventFormat.PLAIN, "CHANNEL_ANSWER")
        reply = await client.api("status")
        print(reply.body_text)
"""

import asyncio
import logging
from typing import AsyncGenerator, Callable, Optional, Self

from ..io import EslConnection, EslStreamProtocol, EslEvent, EslMessage, CommandResponse, EventDispatcher
from ..io.dispatch import EventListener
from ..exceptions import (
    EslError,
    EslAuthenticationError,
    EslConnectError,
    EslConnectionClosedError,
    EslConnectionError,
    EslNotConnectedError,
)
from ..utils import invoke_callback
from .commands import EslCommands
from .types import Const, InboundState


class InboundClient(EslCommands):

    def __init__(self,
                 logger: Optional[logging.Logger] = None,
                 max_workers: int = Const.DEFAULT_MAX_WORKERS,
                 print_traffic: bool = False):
        self.logger = logger or logging.getLogger(__name__)
        self.print_traffic = print_traffic
        self.state: Optional[InboundState] = None
        self.host: Optional[str] = None
        self.port: Optional[int] = None
        self.dispatcher = EventDispatcher(max_workers=max_workers, logger=self.logger)

        self._connection: Optional[EslConnection] = None
        self._auth_request: Optional[asyncio.Future] = None
        self._closing = False
        self._tasks: set[asyncio.Task] = set()

        self._on_disconnect: Optional[Callable[["InboundClient"], object]] = None

    @classmethod
    async def create(cls,
                     host: str = Const.DEFAULT_HOST,
                     port: int = Const.DEFAULT_INBOUND_PORT,
                     password: str = Const.DEFAULT_PASSWORD,
                     timeout: float = Const.DEFAULT_TIMEOUT,
                     logger: Optional[logging.Logger] = None,
                     max_workers: int = Const.DEFAULT_MAX_WORKERS,
                     print_traffic: bool = False) -> Self:
        """Create a client and connect it"""
        self = cls(logger=logger, max_workers=max_workers, print_traffic=print_traffic)
        await self.connect(host, port, password, timeout)
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================
    # CALLBACKS
    # ============================

    @property
    def on_disconnect(self) -> Optional[Callable[["InboundClient"], object]]:
        return self._on_disconnect

    @on_disconnect.setter
    def on_disconnect(self, callback: Optional[Callable[["InboundClient"], object]]):
        self._on_disconnect = callback

    def add_event_listener(self, listener: EventListener, event_name: Optional[str] = None) -> None:
        self.dispatcher.add_listener(listener, event_name)

    def remove_event_listener(self, listener: EventListener, event_name: Optional[str] = None) -> bool:
        return self.dispatcher.remove_listener(listener, event_name)

    def events(self, event_name: Optional[str] = None) -> AsyncGenerator[EslEvent, None]:
        """Async generator over received events, ends when the client closes"""
        return self.dispatcher.events(event_name)

    # ============================
    # CONNECTION
    # ============================

    async def connect(self,
                      host: str = Const.DEFAULT_HOST,
                      port: int = Const.DEFAULT_INBOUND_PORT,
                      password: str = Const.DEFAULT_PASSWORD,
                      timeout: float = Const.DEFAULT_TIMEOUT) -> None:
        """
        Connect and authenticate.

        Raises EslConnectError when the socket cannot be opened or the switch
        rejects the connection, and EslAuthenticationError when the password is
        refused or the handshake does not finish within timeout seconds.
        """
        if self._connection is not None:
            await self.close()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        self.host, self.port = host, port
        self._closing = False
        self.state = InboundState.CONNECTING
        self._auth_request = loop.create_future()

        connection = EslConnection(outbound=False, logger=self.logger, print_traffic=self.print_traffic)
        connection.set_callbacks(
            on_event=self.dispatcher.dispatch,
            on_auth_request=self._handle_auth_request,
            on_rude_rejection=self._handle_rude_rejection,
            on_close=self._handle_close,
        )
        self._connection = connection

        self.logger.info(f"Connecting to {host}:{port}")
        try:
            await asyncio.wait_for(
                loop.create_connection(lambda: EslStreamProtocol(connection, self.logger), host, port),
                timeout)
        except (OSError, asyncio.TimeoutError) as e:
            self.state = InboundState.FAILED
            self._connection = None
            self.logger.error(f"Failed to connect to {host}:{port}: {e!r}")
            raise EslConnectError(f"Failed to connect to {host}:{port}: {e!r}") from e

        if self.state is InboundState.CONNECTING:
            self.state = InboundState.AWAITING_AUTH_REQUEST
        try:
            await asyncio.wait_for(self._auth_request, max(0.0, deadline - loop.time()))
        except asyncio.TimeoutError:
            raise await self._abort(EslAuthenticationError("Timed out waiting for auth/request"))
        except EslConnectError:
            # Rude rejection or the socket closed before the auth request
            self.state = InboundState.FAILED
            raise

        self.state = InboundState.AUTHENTICATING
        try:
            reply = await asyncio.wait_for(
                connection.send_command(f"{self.CMD['AUTH']} {password}"),
                max(0.0, deadline - loop.time()))
        except asyncio.TimeoutError:
            raise await self._abort(EslAuthenticationError("Timed out waiting for auth reply"))
        except EslConnectionError as e:
            self.state = InboundState.FAILED
            raise EslAuthenticationError(f"Connection lost during authentication: {e}") from e

        response = CommandResponse(self.CMD["AUTH"], reply)
        if not response.is_ok:
            self.logger.error(f"Authentication to {host}:{port} failed: {response.reply_text}")
            raise await self._abort(EslAuthenticationError(
                f"Authentication failed: {response.reply_text}", response.reply_text))

        self.state = InboundState.READY
        connection.mark_ready()
        self.logger.info(f"Authenticated to {host}:{port}")

    async def _abort(self, error: EslError) -> EslError:
        self.state = InboundState.FAILED
        if self._connection is not None:
            self._connection.fail(error)
            await self._connection.wait_closed()
        return error

    def _handle_auth_request(self, message: EslMessage) -> None:
        if self._auth_request is not None and not self._auth_request.done():
            self._auth_request.set_result(message)
        else:
            self.logger.warning("Ignoring repeated auth/request")

    def _handle_rude_rejection(self, message: EslMessage) -> None:
        if self._auth_request is not None and not self._auth_request.done():
            self._auth_request.set_exception(EslConnectError(f"Connection rejected: {message.body_text.strip()}"))

    def _handle_close(self, exc: Optional[BaseException]) -> None:
        if self._auth_request is not None and not self._auth_request.done():
            self._auth_request.set_exception(EslConnectError(f"Connection closed before auth/request: {exc}"))
        was_ready = self.state is InboundState.READY
        if self.state is not InboundState.FAILED:
            self.state = InboundState.FAILED if exc is not None and not self._closing else InboundState.CLOSED
        if was_ready and not self._closing:
            self.logger.warning(f"Disconnected from {self.host}:{self.port}")
            if self._on_disconnect:
                task = asyncio.get_running_loop().create_task(
                    invoke_callback(self._on_disconnect, self, logger=self.logger))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    def _ready_connection(self) -> EslConnection:
        if self.state is InboundState.READY and self._connection is not None:
            return self._connection
        if self.state in (InboundState.FAILED, InboundState.CLOSED):
            raise EslConnectionClosedError(f"Client is {self.state.value}")
        raise EslNotConnectedError("Client is not connected")

    def can_send(self) -> bool:
        return self.state is InboundState.READY and self._connection is not None and self._connection.is_connected()

    def is_connected(self) -> bool:
        return self.can_send()

    async def close(self) -> None:
        """Say goodbye to the switch, close the socket and stop listener workers"""
        connection = self._connection
        if connection is None:
            return
        self._closing = True
        if self.state is InboundState.READY:
            try:
                await asyncio.wait_for(self.exit(), Const.EXIT_TIMEOUT)
            except (EslError, asyncio.TimeoutError) as e:
                self.logger.debug(f"Exit command not acknowledged: {e!r}")
        await connection.close()
        self._connection = None
        if self.state is not InboundState.FAILED:
            self.state = InboundState.CLOSED
        await self.dispatcher.aclose()
        self.logger.info(f"Closed connection to {self.host}:{self.port}")
