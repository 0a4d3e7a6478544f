"""
Outbound example: a tiny PIN-checking IVR.

Point a dialplan extension at this server:
    <action application="socket" data="127.0.0.1:8084 async full"/>
"""

import logging

from eventsocket import (
    EslConfig,
    EslEvent,
    Execute,
    ExecuteError,
    EslConnectionClosedError,
    OutboundServer,
    OutboundSession,
    setup_logging,
    run_with_keyboard_interrupt,
)


class Const:
    CONFIG_FILE = "examples/config.yaml"
    PIN = "1234"
    PROMPT = "ivr/ivr-please_enter_pin_followed_by_pound.wav"
    INVALID = "ivr/ivr-that_was_an_invalid_entry.wav"
    WELCOME = "ivr/ivr-welcome.wav"
    GOODBYE = "voicemail/vm-goodbye.wav"


class PinIvr:
    """One instance per call"""

    def __init__(self, logger: logging.Logger) -> None:
        self.logger = logger

    async def on_connect(self, session: OutboundSession, channel_data: EslEvent) -> None:
        caller = channel_data.get_header("Caller-Caller-ID-Number", "unknown")
        self.logger.info(f"Call {session.uuid} from {caller}")
        call = Execute(session, session.uuid)
        try:
            await session.myevents()
            await session.linger()
            await call.answer()
            digits = await call.play_and_get_digits(4, 4, 3, 5000, "#", Const.PROMPT, Const.INVALID, r"\d{4}")
            if digits == Const.PIN:
                await call.playback(Const.WELCOME)
            else:
                self.logger.warning(f"Call {session.uuid} entered wrong PIN")
            await call.playback(Const.GOODBYE)
            await call.hangup("NORMAL_CLEARING")
        except ExecuteError as e:
            self.logger.error(f"Call {session.uuid} application failed: {e}")
        except EslConnectionClosedError:
            self.logger.info(f"Call {session.uuid} hung up early")

    def on_event(self, session: OutboundSession, event: EslEvent) -> None:
        self.logger.debug(f"Call {session.uuid}: {event.event_name}")

    def on_disconnect(self, session: OutboundSession) -> None:
        self.logger.info(f"Call {session.uuid} finished")


async def main() -> None:
    config = EslConfig.load(Const.CONFIG_FILE)
    logger = setup_logging(config.logging, "PinIvr")
    server = OutboundServer(
        lambda: PinIvr(logger),
        host=config.outbound.listen_host,
        port=config.outbound.listen_port,
        logger=logger,
        max_workers=config.outbound.max_workers,
    )
    async with server:
        await server.serve_forever()


if __name__ == "__main__":
    run_with_keyboard_interrupt(main)
