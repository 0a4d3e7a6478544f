"""
Event dispatch.

Unsolicited events are delivered to registered listeners without blocking the
decode path. Each listener owns a mailbox drained by one worker task, so its
callbacks run one at a time and in wire order. A shared semaphore bounds how
many listener callbacks run at once across the dispatcher.

Example usage:
    dispatcher = EventDispatcher(max_workers=8)
    dispatcher.add_listener(on_hangup, "CHANNEL_HANGUP")
    dispatcher.add_listener(on_any)            # every event
    dispatcher.dispatch(event)                 # from the decode path

    async for event in dispatcher.events("HEARTBEAT"):
        print(event.get_header("Up-Time"))
"""

import asyncio
import logging
from typing import Any, AsyncGenerator, Callable, Optional

from .message import EslEvent
from ..utils import invoke_callback, callback_name


# Constants
class DispatchConst:
    """Constants for the EventDispatcher"""
    DEFAULT_MAX_WORKERS = 32
    ALL_EVENTS = "ALL"


EventListener = Callable[[EslEvent], Any]

_STOP = object()


class _ListenerSlot:
    """A listener, the event names it wants and its mailbox"""

    def __init__(self, listener: EventListener):
        self.listener = listener
        # None means every event
        self.event_names: Optional[set[str]] = set()
        self.mailbox: asyncio.Queue = asyncio.Queue()
        self.task: Optional[asyncio.Task] = None

    def subscribe(self, event_name: Optional[str]) -> None:
        if event_name is None or event_name == DispatchConst.ALL_EVENTS:
            self.event_names = None
        elif self.event_names is not None:
            self.event_names.add(event_name)

    def wants(self, event: EslEvent) -> bool:
        if self.event_names is None:
            return True
        return event.event_name in self.event_names or (
            event.event_subclass is not None and event.event_subclass in self.event_names)


class EventDispatcher:

    def __init__(self,
                 max_workers: int = DispatchConst.DEFAULT_MAX_WORKERS,
                 logger: Optional[logging.Logger] = None,
                 semaphore: Optional[asyncio.Semaphore] = None):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)
        self._semaphore = semaphore or asyncio.Semaphore(max_workers)
        self._slots: dict[EventListener, _ListenerSlot] = {}
        self._streams: set[asyncio.Queue] = set()

    def __len__(self) -> int:
        return len(self._slots)

    def add_listener(self, listener: EventListener, event_name: Optional[str] = None) -> None:
        """
        Register a listener for one event name, or every event when
        event_name is None or "ALL". Registering the same listener again
        widens its filter; it keeps a single mailbox.
        """
        slot = self._slots.get(listener)
        if slot is None:
            slot = _ListenerSlot(listener)
            self._slots[listener] = slot
        slot.subscribe(event_name)

    def remove_listener(self, listener: EventListener, event_name: Optional[str] = None) -> bool:
        """Remove a listener entirely, or only one of its event names"""
        slot = self._slots.get(listener)
        if slot is None:
            return False
        if event_name is not None and event_name != DispatchConst.ALL_EVENTS:
            if slot.event_names is None or event_name not in slot.event_names:
                return False
            slot.event_names.discard(event_name)
            if slot.event_names:
                return True
        del self._slots[listener]
        slot.mailbox.put_nowait(_STOP)
        return True

    def has_listener(self, listener: EventListener) -> bool:
        return listener in self._slots

    def dispatch(self, event: EslEvent) -> int:
        """Queue an event for every interested listener; never blocks"""
        delivered = 0
        for slot in list(self._slots.values()):
            if not slot.wants(event):
                continue
            slot.mailbox.put_nowait(event)
            if slot.task is None or slot.task.done():
                slot.task = asyncio.get_running_loop().create_task(self._run(slot))
            delivered += 1
        return delivered

    async def _run(self, slot: _ListenerSlot) -> None:
        while True:
            event = await slot.mailbox.get()
            if event is _STOP:
                return
            async with self._semaphore:
                await invoke_callback(slot.listener, event, logger=self.logger)

    async def events(self, event_name: Optional[str] = None) -> AsyncGenerator[EslEvent, None]:
        """Async generator over dispatched events; ends when the dispatcher closes"""
        stream: asyncio.Queue = asyncio.Queue()
        self._streams.add(stream)
        self.add_listener(stream.put_nowait, event_name)
        try:
            while True:
                event = await stream.get()
                if event is _STOP:
                    return
                yield event
        finally:
            self._streams.discard(stream)
            self.remove_listener(stream.put_nowait)

    async def aclose(self) -> None:
        """Let every listener finish its queued events, then stop the workers"""
        for stream in list(self._streams):
            stream.put_nowait(_STOP)
        tasks = []
        for slot in self._slots.values():
            if slot.task is not None and not slot.task.done():
                slot.mailbox.put_nowait(_STOP)
                tasks.append(slot.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.logger.debug(f"Event dispatcher closed, {len(tasks)} workers stopped")

    def describe(self) -> list[str]:
        return [callback_name(slot.listener) for slot in self._slots.values()]
