"""Exception types raised by the meeting control client."""

from typing import Optional


class TeamsLocalError(Exception):
    """Base class for every error raised by this package."""


class HostUnavailable(TeamsLocalError):
    """The host application is not running and the caller chose not to wait."""


class TransportError(TeamsLocalError):
    """Socket-level failure while opening, writing to or reading from the host."""


class ProtocolError(TeamsLocalError):
    """The peer violated the framing rules or the socket ended up in an unexpected state."""


class NotConnectedError(TeamsLocalError):
    """A command was issued while the connection is closing or closed."""


class DecodeError(TeamsLocalError):
    """A frame or wire token could not be decoded."""


class RemoteError(TeamsLocalError):
    """Error text reported by the host application in an ``errorMsg`` field."""

    def __init__(self, message: str, request_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
