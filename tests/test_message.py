"""Tests for message classification and lazy event parsing."""

import json

import pytest

from eventsocket.io import FrameDecoder, ContentType, EslMessage, EslEvent, CommandResponse, classify
from eventsocket.exceptions import EslClassificationError

from conftest import frame, command_reply, api_response, plain_event


def decode_one(data: bytes) -> EslMessage:
    frames = list(FrameDecoder().feed(data))
    assert len(frames) == 1
    return classify(frames[0])


class TestClassify:

    @pytest.mark.parametrize("content_type", [c for c in ContentType])
    def test_known_content_types(self, content_type):
        body = "{}" if content_type is ContentType.EVENT_JSON else None
        message = decode_one(frame([("Content-Type", content_type.value)], body))

        assert message.content_type is content_type
        assert isinstance(message, EslEvent) == content_type.is_event

    def test_missing_content_type(self):
        with pytest.raises(EslClassificationError):
            decode_one(frame([("Reply-Text", "+OK")]))

    def test_unknown_content_type(self):
        with pytest.raises(EslClassificationError):
            decode_one(frame([("Content-Type", "text/unknown")]))

    def test_reply_text_and_job_uuid(self):
        message = decode_one(command_reply("+OK Job-UUID: abc123", Job_UUID="abc123"))

        assert message.reply_text == "+OK Job-UUID: abc123"
        assert message.job_uuid == "abc123"

    def test_api_response_reply_text_is_body(self):
        message = decode_one(api_response("-ERR no such command\n"))

        assert message.reply_text == "-ERR no such command"
        assert message.body_lines == ["-ERR no such command"]


class TestEslEvent:

    def test_plain_event_headers_are_url_decoded(self):
        event = decode_one(plain_event("CHANNEL_ANSWER", {"Caller-Caller-ID-Name": "Jane Doe", "Unique-ID": "u-1"}))

        assert event.event_name == "CHANNEL_ANSWER"
        assert event.get_header("Caller-Caller-ID-Name") == "Jane Doe"
        assert event.unique_id == "u-1"
        assert event.body_lines == []

    def test_plain_event_body_lines(self):
        event = decode_one(plain_event("BACKGROUND_JOB", {"Job-UUID": "abc123"}, "+OK Status\nline 2\n"))

        assert event.job_uuid == "abc123"
        assert event.body_lines == ["+OK Status", "line 2"]

    def test_plain_event_with_custom_subclass(self):
        event = decode_one(plain_event("CUSTOM", {"Event-Subclass": "sofia::register"}))

        assert event.event_subclass == "sofia::register"

    def test_json_event(self):
        body = json.dumps({"Event-Name": "BACKGROUND_JOB", "Job-UUID": "j1", "_body": "+OK done\n"})
        event = decode_one(frame([("Content-Type", "text/event-json")], body))

        assert event.event_name == "BACKGROUND_JOB"
        assert event.job_uuid == "j1"
        assert event.body_lines == ["+OK done"]
        assert "_body" not in event.event_headers

    def test_invalid_json_event(self):
        event = decode_one(frame([("Content-Type", "text/event-json")], "{not json"))

        with pytest.raises(EslClassificationError):
            event.event_name

    def test_xml_event(self):
        body = (
            "<event><headers><Event-Name>HEARTBEAT</Event-Name>"
            "<Up-Time>0%20years</Up-Time></headers><body>one\ntwo</body></event>"
        )
        event = decode_one(frame([("Content-Type", "text/event-xml")], body))

        assert event.event_name == "HEARTBEAT"
        assert event.get_header("Up-Time") == "0 years"
        assert event.body_lines == ["one", "two"]

    def test_channel_data(self):
        message = decode_one(frame([
            ("Content-Type", "command/reply"),
            ("Reply-Text", "+OK"),
            ("Unique-ID", "call-1"),
            ("Caller-Caller-ID-Name", "Jane%20Doe"),
        ]))
        event = EslEvent.from_channel_data(message)

        assert event.channel_data
        assert event.unique_id == "call-1"
        assert event.get_header("Caller-Caller-ID-Name") == "Jane Doe"
        assert event.body_lines == []
        assert event.event_name is None

    def test_parsing_is_cached(self):
        event = decode_one(plain_event("HEARTBEAT"))

        assert event.event_headers is event.event_headers


class TestCommandResponse:

    def test_ok(self):
        response = CommandResponse("auth ClueCon", decode_one(command_reply("+OK accepted")))

        assert response.is_ok
        assert response.reason == "accepted"

    def test_err(self):
        response = CommandResponse("auth wrong", decode_one(command_reply("-ERR invalid")))

        assert not response.is_ok
        assert response.reason == "invalid"
        assert response.reply_text == "-ERR invalid"

    def test_missing_reply_text_is_failure(self):
        response = CommandResponse("noop", decode_one(frame([("Content-Type", "command/reply")])))

        assert not response.is_ok
        assert response.reply_text == ""

    def test_api_response_verdict_from_body(self):
        response = CommandResponse("api reloadxml", decode_one(api_response("+OK [Success]\n")))

        assert response.is_ok
        assert response.reason == "[Success]"
