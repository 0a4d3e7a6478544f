"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Optional
from urllib.parse import quote

import pytest

from eventsocket.io import EslConnection, EslStreamProtocol


class FakeTransport(asyncio.Transport):
    """In-memory transport that records writes and reports closure to its protocol"""

    def __init__(self, protocol: Optional[asyncio.Protocol] = None):
        super().__init__()
        self.protocol = protocol
        self.written = bytearray()
        self.closed = False

    def write(self, data):
        if self.closed:
            raise RuntimeError("write after close")
        self.written.extend(data)

    def is_closing(self):
        return self.closed

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self.protocol is not None:
            asyncio.get_running_loop().call_soon(self.protocol.connection_lost, None)

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return ("127.0.0.1", 8021)
        return default

    @property
    def sent(self) -> str:
        return self.written.decode("utf-8")


def frame(headers, body=None) -> bytes:
    """Encode a frame; a body adds its Content-Length header"""
    if isinstance(headers, dict):
        headers = list(headers.items())
    if isinstance(body, str):
        body = body.encode("utf-8")
    lines = [f"{name}: {value}" for name, value in headers]
    if body is not None:
        lines.append(f"Content-Length: {len(body)}")
    return ("\n".join(lines) + "\n\n").encode("utf-8") + (body or b"")


def command_reply(reply_text: str, **extra) -> bytes:
    headers = [("Content-Type", "command/reply"), ("Reply-Text", reply_text)]
    headers += [(name.replace("_", "-"), value) for name, value in extra.items()]
    return frame(headers)


def api_response(body: str) -> bytes:
    return frame([("Content-Type", "api/response")], body)


def auth_request() -> bytes:
    return frame([("Content-Type", "auth/request")])


def disconnect_notice(disposition: Optional[str] = None) -> bytes:
    headers = [("Content-Type", "text/disconnect-notice")]
    if disposition:
        headers.append(("Content-Disposition", disposition))
    return frame(headers, "Disconnected, goodbye.\nSee you at ClueCon!\n")


def plain_event(event_name: str, headers: Optional[dict] = None, body: Optional[str] = None) -> bytes:
    """A text/event-plain frame with URL-encoded event headers"""
    event_headers = {"Event-Name": event_name, **(headers or {})}
    if body is not None:
        event_headers["Content-Length"] = str(len(body.encode("utf-8")))
    text = "".join(f"{name}: {quote(value)}\n" for name, value in event_headers.items()) + "\n"
    if body is not None:
        text += body
    return frame([("Content-Type", "text/event-plain")], text)


def background_job(job_uuid: str, result: str) -> bytes:
    return plain_event("BACKGROUND_JOB", {"Job-UUID": job_uuid, "Job-Command": "status"}, result)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def connection(transport):
    """An inbound EslConnection attached to the transport, past connection_made"""
    conn = EslConnection()
    protocol = EslStreamProtocol(conn)
    transport.protocol = protocol
    protocol.connection_made(transport)
    return conn
