from enum import Enum


class Const:
    """Defaults shared by the inbound client and the outbound server"""
    DEFAULT_HOST = "127.0.0.1"
    DEFAULT_INBOUND_PORT = 8021
    DEFAULT_OUTBOUND_PORT = 8084
    DEFAULT_PASSWORD = "ClueCon"
    DEFAULT_TIMEOUT = 10.0
    DEFAULT_MAX_WORKERS = 32
    EXIT_TIMEOUT = 2.0
    ALL_EVENTS = "ALL"
    UNDEFINED_VARIABLE = "_undef_"


class InboundState(Enum):
    CONNECTING = "connecting"
    AWAITING_AUTH_REQUEST = "awaiting-auth-request"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class OutboundState(Enum):
    ACCEPTED = "accepted"
    CONNECTING_HANDSHAKE = "connecting-handshake"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class EventFormat(str, Enum):
    """Event encodings accepted by the "event" command"""
    PLAIN = "plain"
    XML = "xml"
    JSON = "json"


class LoggingLevel(str, Enum):
    """Levels accepted by the "log" command"""
    CONSOLE = "console"
    ALERT = "alert"
    CRIT = "crit"
    ERR = "err"
    WARNING = "warning"
    NOTICE = "notice"
    INFO = "info"
    DEBUG = "debug"
