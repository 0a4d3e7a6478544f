from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SendMsg:
    """
    A "sendmsg" message addressed to a channel.

    Produces the wire lines:
        sendmsg [uuid]
        call-command: execute
        execute-app-name: playback
        execute-app-arg: /tmp/hello.wav
        ...
    The uuid may be omitted on an outbound connection, where the message
    targets the connection's own channel.
    """
    uuid: Optional[str] = None
    call_command: Optional[str] = None
    app_name: Optional[str] = None
    app_arg: Optional[str] = None
    loops: Optional[int] = None
    hangup_cause: Optional[str] = None
    nomedia_uuid: Optional[str] = None
    event_lock: bool = False
    extra_headers: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def execute(cls,
                app_name: str,
                app_arg: Optional[str] = None,
                uuid: Optional[str] = None,
                loops: Optional[int] = None,
                event_lock: bool = False) -> "SendMsg":
        return cls(uuid=uuid, call_command="execute", app_name=app_name, app_arg=app_arg,
                   loops=loops, event_lock=event_lock)

    @classmethod
    def hangup(cls, cause: str = "NORMAL_CLEARING", uuid: Optional[str] = None) -> "SendMsg":
        return cls(uuid=uuid, call_command="hangup", hangup_cause=cause)

    def add_header(self, name: str, value: str) -> "SendMsg":
        self.extra_headers.append((name, value))
        return self

    def to_lines(self) -> list[str]:
        lines = [f"sendmsg {self.uuid}" if self.uuid else "sendmsg"]
        if self.call_command:
            lines.append(f"call-command: {self.call_command}")
        if self.app_name:
            lines.append(f"execute-app-name: {self.app_name}")
        if self.app_arg is not None and self.app_arg != "":
            lines.append(f"execute-app-arg: {self.app_arg}")
        if self.loops is not None:
            if self.loops < 1:
                raise ValueError("loops must be at least 1")
            lines.append(f"loops: {self.loops}")
        if self.hangup_cause:
            lines.append(f"hangup-cause: {self.hangup_cause}")
        if self.nomedia_uuid:
            lines.append(f"nomedia-uuid: {self.nomedia_uuid}")
        if self.event_lock:
            lines.append("event-lock: true")
        for name, value in self.extra_headers:
            lines.append(f"{name}: {value}")
        for line in lines:
            if "\n" in line or "\r" in line:
                raise ValueError(f"sendmsg line contains a line break: {line!r}")
        return lines
