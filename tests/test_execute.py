"""Tests for the call-control interface."""

import pytest

from eventsocket.api import SendMsg
from eventsocket.interface import Execute, ExecuteError
from eventsocket.io import FrameDecoder, CommandResponse, classify

from conftest import command_reply


def reply(text: str):
    return classify(next(iter(FrameDecoder().feed(command_reply(text)))))


class RecordingApi:
    """Stands in for a connected client: records messages, answers from a script"""

    def __init__(self, reply_text: str = "+OK", variables: dict | None = None):
        self.reply_text = reply_text
        self.variables = variables or {}
        self.messages: list[SendMsg] = []
        self.lookups: list[tuple[str, str]] = []

    async def send_message(self, message: SendMsg) -> CommandResponse:
        self.messages.append(message)
        return CommandResponse(message.to_lines()[0], reply(self.reply_text))

    async def get_variable(self, uuid: str, name: str):
        self.lookups.append((uuid, name))
        return self.variables.get(name)

    @property
    def last_lines(self) -> list[str]:
        return self.messages[-1].to_lines()


class TestSendMsg:

    def test_execute_lines(self):
        lines = SendMsg.execute("playback", "/tmp/a.wav", uuid="u1", loops=2, event_lock=True).to_lines()

        assert lines == [
            "sendmsg u1",
            "call-command: execute",
            "execute-app-name: playback",
            "execute-app-arg: /tmp/a.wav",
            "loops: 2",
            "event-lock: true",
        ]

    def test_without_uuid_and_with_extra_headers(self):
        message = SendMsg(call_command="nomedia", nomedia_uuid="u2").add_header("X-Custom", "1")

        assert message.to_lines() == ["sendmsg", "call-command: nomedia", "nomedia-uuid: u2", "X-Custom: 1"]

    def test_line_breaks_rejected(self):
        with pytest.raises(ValueError):
            SendMsg.execute("playback", "a\nb").to_lines()

    def test_invalid_loops(self):
        with pytest.raises(ValueError):
            SendMsg.execute("playback", "a", loops=0).to_lines()


class TestExecute:

    @pytest.mark.asyncio
    async def test_answer(self):
        api = RecordingApi()
        await Execute(api, "call-1").answer()

        assert api.last_lines == ["sendmsg call-1", "call-command: execute", "execute-app-name: answer"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("call, app, arg", [
        (lambda e: e.bridge(["user/1000", "user/1001"]), "bridge", "user/1000,user/1001"),
        (lambda e: e.transfer("5000", context="default"), "transfer", "5000 XML default"),
        (lambda e: e.set("hangup_after_bridge", "true"), "set", "hangup_after_bridge=true"),
        (lambda e: e.export("foo", "bar", local=False), "export", "nolocal:foo=bar"),
        (lambda e: e.sched_hangup(30, "ALLOTTED_TIMEOUT"), "sched_hangup", "+30 ALLOTTED_TIMEOUT"),
        (lambda e: e.send_dtmf("123", 200), "send_dtmf", "123@200"),
        (lambda e: e.say("en", "number", "pronounced", "42"), "say", "en number pronounced 42"),
        (lambda e: e.speak("flite", "kal", "hello"), "speak", "flite|kal|hello"),
        (lambda e: e.record("/tmp/r.wav", 20, 200), "record", "/tmp/r.wav 20 200"),
        (lambda e: e.break_channel(all=True), "break", "all"),
        (lambda e: e.hangup("USER_BUSY"), "hangup", "USER_BUSY"),
    ])
    async def test_application_arguments(self, call, app, arg):
        api = RecordingApi()
        await call(Execute(api, "call-1"))

        assert api.messages[-1].app_name == app
        assert api.messages[-1].app_arg == arg

    @pytest.mark.asyncio
    async def test_refused_application_raises(self):
        api = RecordingApi(reply_text="-ERR no such app")

        with pytest.raises(ExecuteError) as info:
            await Execute(api, "call-1").playback("missing.wav")
        assert info.value.reply_text == "-ERR no such app"
        assert info.value.app_name == "playback"

    @pytest.mark.asyncio
    async def test_play_and_get_digits_reads_result_variable(self):
        api = RecordingApi()

        class Variables(dict):
            def get(self, name, default=None):
                return "1234" if name.startswith("esl_play_and_get_digits_") else default

        api.variables = Variables()
        digits = await Execute(api, "call-1").play_and_get_digits(
            1, 4, 3, 5000, "#", "prompt.wav", "invalid.wav", r"\d+")

        message = api.messages[-1]
        parts = message.app_arg.split(" ")
        assert digits == "1234"
        assert message.event_lock
        assert parts[:7] == ["1", "4", "3", "5000", "#", "prompt.wav", "invalid.wav"]
        assert parts[8] == r"\d+"
        assert api.lookups == [("call-1", parts[7])]

    @pytest.mark.asyncio
    async def test_read_without_input(self):
        api = RecordingApi()

        assert await Execute(api, "call-1").read(1, 1, "prompt.wav", 3000) is None
        assert api.messages[-1].app_arg.endswith(" 3000 #")

    @pytest.mark.asyncio
    async def test_invalid_digit_bounds(self):
        with pytest.raises(ValueError):
            await Execute(RecordingApi(), "call-1").read(3, 2, "prompt.wav", 3000)

    def test_uuid_required(self):
        with pytest.raises(ValueError):
            Execute(RecordingApi(), "")
