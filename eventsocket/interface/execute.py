"""
Call-control interface.

Execute wraps the dialplan applications a channel can run. Each method builds
a "sendmsg" with call-command execute and sends it through any object that
implements the command API (an InboundClient or an OutboundSession). The
switch's reply is checked and a refusal raises ExecuteError.

Example usage:
    call = Execute(client, "0b5a7a7e-...")
    await call.answer()
    await call.playback("ivr/ivr-welcome.wav")
    digits = await call.play_and_get_digits(1, 4, 3, 5000, "#", "ivr/enter-pin.wav", "ivr/invalid.wav", r"\\d+")
    await call.hangup("NORMAL_CLEARING")
"""

import uuid as uuidlib
from typing import Iterable, Optional

from ..api import EslCommands, SendMsg
from ..io import CommandResponse
from ..exceptions import ExecuteError


class Execute:

    def __init__(self, api: EslCommands, uuid: str):
        if not uuid:
            raise ValueError("Execute needs the channel Unique-ID")
        self.api = api
        self.uuid = uuid

    def __repr__(self) -> str:
        return f"Execute({self.uuid})"

    async def execute(self,
                      app: str,
                      arg: Optional[str] = None,
                      event_lock: bool = False,
                      loops: Optional[int] = None) -> CommandResponse:
        """Run any dialplan application on the channel"""
        message = SendMsg.execute(app, arg, uuid=self.uuid, loops=loops, event_lock=event_lock)
        response = await self.api.send_message(message)
        if not response.is_ok:
            raise ExecuteError(response.reply_text, app)
        return response

    async def _collect(self, app: str, arg_prefix: str, arg_suffix: Optional[str] = None) -> Optional[str]:
        # The result is stored in a channel variable unique to this call
        var = f"esl_{app}_{uuidlib.uuid4().hex[:12]}"
        arg = f"{arg_prefix} {var}"
        if arg_suffix:
            arg = f"{arg} {arg_suffix}"
        await self.execute(app, arg, event_lock=True)
        return await self.api.get_variable(self.uuid, var)

    # ============================
    # ANSWER / HANGUP
    # ============================

    async def answer(self) -> CommandResponse:
        return await self.execute("answer")

    async def pre_answer(self) -> CommandResponse:
        return await self.execute("pre_answer")

    async def ring_ready(self) -> CommandResponse:
        return await self.execute("ring_ready")

    async def hangup(self, cause: Optional[str] = None) -> CommandResponse:
        return await self.execute("hangup", cause)

    async def sched_hangup(self, seconds: int, cause: Optional[str] = None) -> CommandResponse:
        """Hang up in seconds from now"""
        arg = f"+{seconds}"
        if cause:
            arg += f" {cause}"
        return await self.execute("sched_hangup", arg)

    async def respond(self, response: str) -> CommandResponse:
        """Send a SIP response code (with optional reason) to an unanswered call"""
        return await self.execute("respond", response)

    # ============================
    # ROUTING
    # ============================

    async def park(self) -> CommandResponse:
        return await self.execute("park")

    async def bridge(self, endpoints: str | Iterable[str]) -> CommandResponse:
        """Bridge to one endpoint or to several, tried at once"""
        if not isinstance(endpoints, str):
            endpoints = ",".join(endpoints)
        return await self.execute("bridge", endpoints)

    async def transfer(self, extension: str, dialplan: Optional[str] = None, context: Optional[str] = None) -> CommandResponse:
        if context and not dialplan:
            dialplan = "XML"
        parts = [extension] + [p for p in (dialplan, context) if p]
        return await self.execute("transfer", " ".join(parts))

    async def sched_transfer(self, seconds: int, extension: str,
                             dialplan: Optional[str] = None, context: Optional[str] = None) -> CommandResponse:
        parts = [f"+{seconds}", extension] + [p for p in (dialplan, context) if p]
        return await self.execute("sched_transfer", " ".join(parts))

    async def redirect(self, uri: str) -> CommandResponse:
        return await self.execute("redirect", uri)

    async def deflect(self, uri: str) -> CommandResponse:
        return await self.execute("deflect", uri)

    # ============================
    # VARIABLES
    # ============================

    async def set(self, name: str, value: str) -> CommandResponse:
        return await self.execute("set", f"{name}={value}")

    async def export(self, name: str, value: str, local: bool = True) -> CommandResponse:
        """Set a variable that is copied to bridged legs; local=False skips this leg"""
        prefix = "" if local else "nolocal:"
        return await self.execute("export", f"{prefix}{name}={value}")

    async def unset(self, name: str) -> CommandResponse:
        return await self.execute("unset", name)

    # ============================
    # MEDIA
    # ============================

    async def playback(self, file: str, loops: Optional[int] = None) -> CommandResponse:
        return await self.execute("playback", file, loops=loops)

    async def endless_playback(self, file: str) -> CommandResponse:
        return await self.execute("endless_playback", file)

    async def break_channel(self, all: bool = False) -> CommandResponse:
        """Stop the application currently playing media"""
        return await self.execute("break", "all" if all else None)

    async def echo(self) -> CommandResponse:
        return await self.execute("echo")

    async def delay_echo(self, delay_ms: int) -> CommandResponse:
        return await self.execute("delay_echo", str(delay_ms))

    async def sleep(self, ms: int) -> CommandResponse:
        return await self.execute("sleep", str(ms))

    async def gentones(self, tones: str, loops: Optional[int] = None) -> CommandResponse:
        return await self.execute("gentones", f"{tones}|{loops}" if loops else tones)

    async def send_dtmf(self, digits: str, duration_ms: Optional[int] = None) -> CommandResponse:
        return await self.execute("send_dtmf", f"{digits}@{duration_ms}" if duration_ms else digits)

    async def flush_dtmf(self) -> CommandResponse:
        return await self.execute("flush_dtmf")

    async def say(self, module: str, say_type: str, say_method: str, text: str,
                  gender: Optional[str] = None) -> CommandResponse:
        parts = [module, say_type, say_method] + ([gender] if gender else []) + [text]
        return await self.execute("say", " ".join(parts))

    async def speak(self, engine: str, voice: str, text: str) -> CommandResponse:
        return await self.execute("speak", f"{engine}|{voice}|{text}")

    # ============================
    # RECORDING
    # ============================

    async def record(self, path: str, time_limit_secs: Optional[int] = None,
                     silence_thresh: Optional[int] = None, silence_hits: Optional[int] = None) -> CommandResponse:
        parts = [path]
        for value in (time_limit_secs, silence_thresh, silence_hits):
            if value is None:
                break
            parts.append(str(value))
        return await self.execute("record", " ".join(parts))

    async def record_session(self, path: str) -> CommandResponse:
        return await self.execute("record_session", path)

    async def stop_record_session(self, path: str = "all") -> CommandResponse:
        return await self.execute("stop_record_session", path)

    # ============================
    # DIGIT COLLECTION
    # ============================

    async def read(self, min_digits: int, max_digits: int, sound_file: str,
                   timeout_ms: int, terminators: str = "#") -> Optional[str]:
        """Play a prompt and collect digits; None when nothing was entered"""
        if min_digits < 0 or max_digits < max(1, min_digits):
            raise ValueError("Invalid digit bounds")
        return await self._collect(
            "read", f"{min_digits} {max_digits} {sound_file}", f"{timeout_ms} {terminators}")

    async def play_and_get_digits(self, min_digits: int, max_digits: int, tries: int, timeout_ms: int,
                                  terminators: str, sound_file: str, invalid_file: str,
                                  regexp: str = r"\d+", digit_timeout_ms: Optional[int] = None) -> Optional[str]:
        """Prompt up to tries times until the input matches regexp"""
        if min_digits < 0 or max_digits < max(1, min_digits):
            raise ValueError("Invalid digit bounds")
        if tries < 1:
            raise ValueError("tries must be at least 1")
        suffix = regexp if digit_timeout_ms is None else f"{regexp} {digit_timeout_ms}"
        return await self._collect(
            "play_and_get_digits",
            f"{min_digits} {max_digits} {tries} {timeout_ms} {terminators} {sound_file} {invalid_file}",
            suffix)

    # ============================
    # DIAGNOSTICS
    # ============================

    async def info(self) -> CommandResponse:
        return await self.execute("info")

    async def log(self, level: str, message: str) -> CommandResponse:
        return await self.execute("log", f"{level} {message}")
