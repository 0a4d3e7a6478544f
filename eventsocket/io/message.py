"""
Event Socket message and event model.

A RawFrame from the decoder is classified by its Content-Type header into an
EslMessage. Frames carrying events become EslEvent, whose event headers and
body lines are parsed lazily from the frame body (plain, JSON or XML) and
cached on first access.

A plain event body uses the same LF-only layout as the frame itself: its
header lines end at the first LF LF.
"""

import json
import time
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Optional
from urllib.parse import unquote

from .framing import RawFrame, DecoderConst
from ..exceptions import EslClassificationError


class MessageConst:
    """Header names and values the engine relies on"""
    CONTENT_TYPE = "Content-Type"
    CONTENT_LENGTH = "Content-Length"
    CONTENT_DISPOSITION = "Content-Disposition"
    REPLY_TEXT = "Reply-Text"
    JOB_UUID = "Job-UUID"
    EVENT_NAME = "Event-Name"
    EVENT_SUBCLASS = "Event-Subclass"
    UNIQUE_ID = "Unique-ID"
    BACKGROUND_JOB = "BACKGROUND_JOB"
    OK_PREFIX = "+OK"
    ERR_PREFIX = "-ERR"
    JSON_BODY_KEY = "_body"
    DISPOSITION_LINGER = "linger"


class ContentType(str, Enum):
    """Frame kinds, keyed by their Content-Type header value"""
    COMMAND_REPLY = "command/reply"
    API_RESPONSE = "api/response"
    AUTH_REQUEST = "auth/request"
    DISCONNECT_NOTICE = "text/disconnect-notice"
    EVENT_PLAIN = "text/event-plain"
    EVENT_XML = "text/event-xml"
    EVENT_JSON = "text/event-json"
    RUDE_REJECTION = "text/rude-rejection"

    @property
    def is_event(self) -> bool:
        return self in (ContentType.EVENT_PLAIN, ContentType.EVENT_XML, ContentType.EVENT_JSON)

    @property
    def is_reply(self) -> bool:
        return self in (ContentType.COMMAND_REPLY, ContentType.API_RESPONSE)


@dataclass(frozen=True)
class EslMessage:
    """A classified frame"""
    frame: RawFrame
    content_type: ContentType
    timestamp: float = field(default_factory=time.time, compare=False)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.frame.header(name, default)

    @property
    def headers(self) -> dict[str, str]:
        """Frame headers; the first value wins for repeated names"""
        result: dict[str, str] = {}
        for name, value in self.frame.headers:
            result.setdefault(name, value)
        return result

    @property
    def body(self) -> Optional[bytes]:
        return self.frame.body

    @property
    def body_text(self) -> str:
        if self.frame.body is None:
            return ""
        return self.frame.body.decode(DecoderConst.ENCODING, errors="replace")

    @property
    def body_lines(self) -> list[str]:
        return self.body_text.splitlines()

    @property
    def reply_text(self) -> Optional[str]:
        """Reply-Text header, or the body for an api/response"""
        if self.content_type is ContentType.API_RESPONSE:
            return self.body_text.strip()
        return self.header(MessageConst.REPLY_TEXT)

    @property
    def job_uuid(self) -> Optional[str]:
        return self.header(MessageConst.JOB_UUID)

    def __str__(self) -> str:
        return f"{self.content_type.value} {self.reply_text or ''}".strip()


@dataclass(frozen=True)
class EslEvent(EslMessage):
    """
    An event frame, or a command/reply reinterpreted as channel data.

    Event headers are URL-decoded. For plain events they come from the body,
    for JSON events from the top-level string members, for XML events from the
    children of <headers>, and for channel data from the frame headers.
    """
    channel_data: bool = False

    @classmethod
    def from_channel_data(cls, message: EslMessage) -> "EslEvent":
        """Treat the reply to an outbound "connect" as a header-only event"""
        return cls(frame=message.frame, content_type=message.content_type, channel_data=True)

    @cached_property
    def _parsed(self) -> tuple[dict[str, str], list[str]]:
        if self.channel_data:
            headers: dict[str, str] = {}
            for name, value in self.frame.headers:
                headers.setdefault(name, unquote(value))
            return headers, []
        match self.content_type:
            case ContentType.EVENT_PLAIN:
                return self._parse_plain(self.frame.body or b"")
            case ContentType.EVENT_JSON:
                return self._parse_json(self.body_text)
            case ContentType.EVENT_XML:
                return self._parse_xml(self.body_text)
        raise EslClassificationError(f"{self.content_type.value} is not an event")

    @staticmethod
    def _parse_plain(body: bytes) -> tuple[dict[str, str], list[str]]:
        head, sep, rest = body.partition(DecoderConst.MESSAGE_TERMINATOR)
        headers: dict[str, str] = {}
        for line in head.decode(DecoderConst.ENCODING, errors="replace").split("\n"):
            line = line.rstrip("\r")
            if not line:
                continue
            name, colon, value = line.partition(":")
            if not colon:
                raise EslClassificationError(f"Malformed event header line: {line!r}")
            headers.setdefault(name.strip(), unquote(value.strip()))
        if not sep:
            return headers, []
        length = headers.get(MessageConst.CONTENT_LENGTH)
        if length is not None and length.isdigit():
            rest = rest[:int(length)]
        return headers, rest.decode(DecoderConst.ENCODING, errors="replace").splitlines()

    @staticmethod
    def _parse_json(text: str) -> tuple[dict[str, str], list[str]]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise EslClassificationError(f"Invalid JSON event body: {e}") from e
        if not isinstance(data, dict):
            raise EslClassificationError("JSON event body is not an object")
        headers = {key: value for key, value in data.items()
                   if key != MessageConst.JSON_BODY_KEY and isinstance(value, str)}
        body = data.get(MessageConst.JSON_BODY_KEY)
        return headers, body.splitlines() if isinstance(body, str) else []

    @staticmethod
    def _parse_xml(text: str) -> tuple[dict[str, str], list[str]]:
        try:
            root = ElementTree.fromstring(text)
        except ElementTree.ParseError as e:
            raise EslClassificationError(f"Invalid XML event body: {e}") from e
        headers: dict[str, str] = {}
        headers_el = root.find("headers")
        if headers_el is not None:
            for child in headers_el:
                headers.setdefault(child.tag, unquote(child.text or ""))
        body_el = root.find("body")
        body = body_el.text if body_el is not None and body_el.text else ""
        return headers, body.splitlines()

    @property
    def event_headers(self) -> dict[str, str]:
        return self._parsed[0]

    @property
    def body_lines(self) -> list[str]:
        return self._parsed[1]

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.event_headers.get(name, default)

    @property
    def event_name(self) -> Optional[str]:
        return self.event_headers.get(MessageConst.EVENT_NAME)

    @property
    def event_subclass(self) -> Optional[str]:
        return self.event_headers.get(MessageConst.EVENT_SUBCLASS)

    @property
    def job_uuid(self) -> Optional[str]:
        return self.event_headers.get(MessageConst.JOB_UUID)

    @property
    def unique_id(self) -> Optional[str]:
        return self.event_headers.get(MessageConst.UNIQUE_ID)

    def __str__(self) -> str:
        if self.channel_data:
            return f"channel data {self.unique_id or ''}".strip()
        return f"{self.content_type.value} {self.event_name or ''}".strip()


def classify(frame: RawFrame) -> EslMessage:
    """Wrap a frame in EslMessage, or EslEvent for event content types"""
    value = frame.header(MessageConst.CONTENT_TYPE)
    if value is None:
        raise EslClassificationError("Frame has no Content-Type header")
    try:
        content_type = ContentType(value)
    except ValueError:
        raise EslClassificationError(f"Unknown Content-Type: {value!r}") from None
    if content_type.is_event:
        return EslEvent(frame=frame, content_type=content_type)
    return EslMessage(frame=frame, content_type=content_type)


@dataclass(frozen=True)
class CommandResponse:
    """The command string that was sent and the message that answered it"""
    command: str
    message: EslMessage

    @property
    def reply_text(self) -> str:
        return self.message.reply_text or ""

    @property
    def is_ok(self) -> bool:
        return self.reply_text.startswith(MessageConst.OK_PREFIX)

    @property
    def reason(self) -> str:
        """Reply text without its +OK or -ERR prefix"""
        text = self.reply_text
        for prefix in (MessageConst.OK_PREFIX, MessageConst.ERR_PREFIX):
            if text.startswith(prefix):
                return text[len(prefix):].strip()
        return text.strip()
