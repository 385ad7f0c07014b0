"""Error types raised by the bridge client and the suite runner."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for everything the harness raises."""


class BridgeConnectionError(BridgeError, ConnectionError):
    """The websocket to the bridge could not be opened."""


class ConnectionClosed(BridgeError):
    """The connection went away while a request was outstanding."""


class RemoteError(BridgeError):
    """The bridge answered with ``success: false``."""

    def __init__(self, message: str, method: str | None = None):
        super().__init__(message)
        self.message = message
        self.method = method


class RequestTimeout(BridgeError, TimeoutError):
    """No response arrived before the request deadline."""


class ParseError(BridgeError, ValueError):
    """An inbound frame could not be decoded into a response envelope."""


class LaunchFailure(BridgeError, OSError):
    """A test program could not be started."""
