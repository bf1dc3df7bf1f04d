"""Exception types raised by the relay and its collaborators."""

from __future__ import annotations


class LivebridgeError(Exception):
    """Base class for relay errors."""


class ApiProxyError(LivebridgeError):
    """The API proxy could not produce a response.

    ``status`` is the HTTP status to report to the client; 500 is used when
    the failure carries none.
    """

    DEFAULT_STATUS = 500

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    @property
    def effective_status(self) -> int:
        return self.status or self.DEFAULT_STATUS


class UpstreamConnectError(LivebridgeError):
    """The upstream WebSocket never reached the open state."""

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Failed to connect to {target}: {reason}")
        self.target = target
        self.reason = reason


class StaticResourceNotFound(LivebridgeError):
    """A static resource is missing or unreadable."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Static resource not found: {path}")
        self.path = path
