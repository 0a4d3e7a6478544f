"""Tests for the frame decoder."""

import pytest

from eventsocket.io import FrameDecoder, RawFrame, DecoderConst
from eventsocket.exceptions import EslFramingError

from conftest import frame, command_reply, plain_event, api_response


STREAM = (
    command_reply("+OK accepted")
    + api_response("UP 0 years, 1 day\n")
    + plain_event("HEARTBEAT", {"Up-Time": "0 years, 1 day"})
    + frame([("Content-Type", "command/reply"), ("Reply-Text", "+OK"), ("Variable", "a"), ("Variable", "b")])
)


class TestFrameDecoder:

    def test_header_only_frame(self):
        frames = list(FrameDecoder().feed(command_reply("+OK accepted")))

        assert len(frames) == 1
        assert frames[0].header("Content-Type") == "command/reply"
        assert frames[0].header("Reply-Text") == "+OK accepted"
        assert frames[0].body is None

    def test_body_is_exactly_content_length_bytes(self):
        data = frame([("Content-Type", "api/response")], b"line one\nline two\n\n") + command_reply("+OK")
        frames = list(FrameDecoder().feed(data))

        assert frames[0].body == b"line one\nline two\n\n"
        assert frames[1].header("Reply-Text") == "+OK"

    def test_frame_waits_for_body(self):
        decoder = FrameDecoder()
        data = api_response("0123456789")

        assert list(decoder.feed(data[:-4])) == []
        frames = list(decoder.feed(data[-4:]))

        assert frames[0].body == b"0123456789"
        assert decoder.buffered == 0

    def test_zero_length_body(self):
        frames = list(FrameDecoder().feed(frame([("Content-Type", "api/response")], b"")))

        assert frames[0].body == b""

    def test_single_byte_chunks_match_whole_delivery(self):
        whole = list(FrameDecoder().feed(STREAM))

        decoder = FrameDecoder()
        chunked = []
        for i in range(len(STREAM)):
            chunked.extend(decoder.feed(STREAM[i:i + 1]))

        assert chunked == whole
        assert len(whole) == 4

    def test_split_inside_delimiter(self):
        data = command_reply("+OK")
        cut = data.index(b"\n\n") + 1
        decoder = FrameDecoder()

        assert list(decoder.feed(data[:cut])) == []
        assert len(list(decoder.feed(data[cut:]))) == 1

    def test_duplicate_headers_preserved_in_order(self):
        frames = list(FrameDecoder().feed(STREAM))

        assert frames[3].header_values("Variable") == ["a", "b"]
        assert frames[3].header("Variable") == "a"

    def test_whitespace_and_carriage_returns_trimmed(self):
        frames = list(FrameDecoder().feed(b"Content-Type:   command/reply\r\nReply-Text: +OK  \r\n\n"))

        assert frames[0].headers == (("Content-Type", "command/reply"), ("Reply-Text", "+OK"))

    def test_leading_blank_lines_skipped(self):
        frames = list(FrameDecoder().feed(b"\n\n\n" + command_reply("+OK")))

        assert len(frames) == 1
        assert frames[0].header("Reply-Text") == "+OK"

    def test_value_may_contain_colons(self):
        frames = list(FrameDecoder().feed(frame([("Content-Type", "command/reply"), ("Reply-Text", "+OK Job-UUID: abc")])))

        assert frames[0].header("Reply-Text") == "+OK Job-UUID: abc"

    def test_line_without_colon_is_fatal(self):
        decoder = FrameDecoder()

        with pytest.raises(EslFramingError):
            list(decoder.feed(b"Content-Type: command/reply\ngarbage\n\n"))
        with pytest.raises(EslFramingError):
            decoder.feed(command_reply("+OK"))

    @pytest.mark.parametrize("value", ["-1", "abc", "12x", "", "1.5"])
    def test_invalid_content_length(self, value):
        with pytest.raises(EslFramingError):
            list(FrameDecoder().feed(f"Content-Type: api/response\nContent-Length: {value}\n\n".encode()))

    def test_oversized_header_block(self):
        decoder = FrameDecoder(max_header_size=64)
        block = b"Content-Type: command/reply\nX-Long: " + b"a" * 100 + b"\n\n"

        with pytest.raises(EslFramingError):
            list(decoder.feed(block))

    def test_oversized_unterminated_header_block(self):
        decoder = FrameDecoder(max_header_size=64)

        with pytest.raises(EslFramingError):
            list(decoder.feed(b"X-Long: " + b"a" * 100))

    def test_header_block_at_size_limit_any_chunking(self):
        block = b"Content-Type: command/reply\nReply-Text: +OK"
        data = block + b"\n\n"

        whole = list(FrameDecoder(max_header_size=len(block)).feed(data))
        decoder = FrameDecoder(max_header_size=len(block))
        split = [f for i in range(len(data)) for f in decoder.feed(data[i:i + 1])]

        assert split == whole
        assert whole[0].header("Reply-Text") == "+OK"
        with pytest.raises(EslFramingError):
            list(FrameDecoder(max_header_size=len(block) - 1).feed(data))

    def test_crlf_blank_line_does_not_end_header_block(self):
        decoder = FrameDecoder()

        assert list(decoder.feed(b"Content-Type: command/reply\r\nReply-Text: +OK\r\n\r\n")) == []
        assert decoder.buffered > 0

    def test_outbound_role_accepts_large_channel_data(self):
        headers = [("Content-Type", "command/reply"), ("Reply-Text", "+OK")]
        headers += [(f"variable_v{i}", "x" * 40) for i in range(300)]
        data = frame(headers)
        assert len(data) > DecoderConst.MAX_HEADER_SIZE

        frames = list(FrameDecoder(outbound=True).feed(data))

        assert frames[0].header("variable_v299") == "x" * 40
        assert frames[0].body is None
        with pytest.raises(EslFramingError):
            list(FrameDecoder().feed(data))

    def test_encode_round_trips(self):
        original = list(FrameDecoder().feed(api_response("hello\n")))[0]

        assert list(FrameDecoder().feed(original.encode())) == [original]

    def test_raw_frame_helpers(self):
        raw = RawFrame(headers=(("A", "1"), ("B", "2")))

        assert raw.has_header("A")
        assert not raw.has_header("C")
        assert raw.header("C", "default") == "default"
        assert raw.content_length is None
