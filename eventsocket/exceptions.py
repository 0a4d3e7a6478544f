"""
eventsocket library exceptions.

This module defines all custom exceptions used throughout the library.
Errors raised on the decode path are fatal to the connection; errors raised
at a call site only fail that call.
"""


class EslError(Exception):
    """Base exception for Event Socket errors"""
    pass


class EslFramingError(EslError):
    """Raised when the byte stream cannot be split into frames"""
    pass


class EslClassificationError(EslError):
    """Raised when a frame has a missing or unknown Content-Type"""
    pass


class EslProtocolViolation(EslError):
    """Raised when the peer breaks the request/reply contract"""
    pass


class EslConnectionError(EslError):
    """Base for errors about the state of the TCP connection"""
    pass


class EslConnectError(EslConnectionError):
    """Raised when the TCP connection cannot be established or is rejected"""
    pass


class EslAuthenticationError(EslConnectionError):
    """Raised when the inbound auth handshake is rejected or times out"""

    def __init__(self, message: str, reply_text: str | None = None):
        super().__init__(message)
        self.reply_text = reply_text


class EslConnectionClosedError(EslConnectionError):
    """Raised for commands outstanding when, or sent after, the connection closed"""
    pass


class EslNotConnectedError(EslConnectionError):
    """Raised when a command is sent before the handshake has completed"""
    pass


class EslTimeoutError(EslError):
    """Raised when a caller-supplied wait expires"""
    pass


class EslConfigurationError(EslError):
    """Raised when configuration is invalid"""
    pass


class ExecuteError(EslError):
    """Raised when a dialplan application is refused by the switch"""

    def __init__(self, reply_text: str, app_name: str | None = None):
        super().__init__(f"{app_name}: {reply_text}" if app_name else reply_text)
        self.reply_text = reply_text
        self.app_name = app_name
