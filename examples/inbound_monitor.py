"""
Inbound example: track live calls on a switch.

Connects with the settings in examples/config.yaml, keeps a table of live
channels from CHANNEL_CREATE / CHANNEL_ANSWER / CHANNEL_HANGUP_COMPLETE events,
and prints the switch status every 30 seconds using bgapi.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

from colorama import Fore, Style

import eventsocket
from eventsocket import EslConfig, EslEvent, InboundClient, setup_logging, run_with_keyboard_interrupt


class Const:
    CONFIG_FILE = "examples/config.yaml"
    STATUS_INTERVAL = 30
    RECONNECT_DELAY = 5


@dataclass
class LiveCall:
    uuid: str
    caller: str
    destination: str
    answered: bool = False
    created: float = field(default_factory=time.time)


class CallMonitor:

    def __init__(self, config_path: str = Const.CONFIG_FILE) -> None:
        self.config = EslConfig.load(config_path)
        self.logger = setup_logging(self.config.logging, "CallMonitor")
        self.client = InboundClient(logger=self.logger)
        self.calls: dict[str, LiveCall] = {}

    # ================================
    #             EVENTS
    # ================================

    def on_create(self, event: EslEvent) -> None:
        call = LiveCall(
            uuid=event.unique_id or "",
            caller=event.get_header("Caller-Caller-ID-Number", "unknown"),
            destination=event.get_header("Caller-Destination-Number", "unknown"),
        )
        self.calls[call.uuid] = call
        print(Fore.GREEN + f"+ {call.caller} -> {call.destination}" + Style.DIM + f"  {call.uuid}" + Style.RESET_ALL)

    def on_answer(self, event: EslEvent) -> None:
        call = self.calls.get(event.unique_id or "")
        if call:
            call.answered = True
            print(Fore.CYAN + f"~ {call.caller} -> {call.destination} answered" + Style.RESET_ALL)

    def on_hangup(self, event: EslEvent) -> None:
        call = self.calls.pop(event.unique_id or "", None)
        if call:
            duration = time.time() - call.created
            cause = event.get_header("Hangup-Cause", "UNKNOWN")
            print(Fore.RED + f"- {call.caller} -> {call.destination} {cause} after {duration:.0f}s" + Style.RESET_ALL)

    # ================================
    #           MAIN LOOP
    # ================================

    async def connect(self) -> None:
        inbound = self.config.inbound
        await self.client.connect(inbound.host, inbound.port, inbound.password, inbound.timeout)
        await self.client.set_event_subscriptions(inbound.format, inbound.events)

    async def report_status(self) -> None:
        while self.client.can_send():
            job = await self.client.bgapi("status")
            status = job.body_lines[0] if job.body_lines else "no status"
            self.logger.info(f"{len(self.calls)} live calls; {status}")
            await asyncio.sleep(Const.STATUS_INTERVAL)

    async def run(self) -> None:
        self.client.add_event_listener(self.on_create, "CHANNEL_CREATE")
        self.client.add_event_listener(self.on_answer, "CHANNEL_ANSWER")
        self.client.add_event_listener(self.on_hangup, "CHANNEL_HANGUP_COMPLETE")
        while True:
            try:
                await self.connect()
                await self.report_status()
            except eventsocket.EslConnectionError as e:
                self.logger.error(f"Connection problem: {e}")
            self.calls.clear()
            await self.client.close()
            await asyncio.sleep(Const.RECONNECT_DELAY)


async def main(config_path: Optional[str] = None) -> None:
    monitor = CallMonitor(config_path or Const.CONFIG_FILE)
    await monitor.run()


if __name__ == "__main__":
    run_with_keyboard_interrupt(main)
