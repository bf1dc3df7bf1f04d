"""Connection states and lifecycle events exchanged inside a relay session."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

Payload = str | bytes

# Close codes that must never appear in a close frame (RFC 6455 section 7.4.1).
NO_STATUS_RECEIVED = 1005
ABNORMAL_CLOSURE = 1006
TLS_HANDSHAKE = 1015
NORMAL_CLOSURE = 1000
INTERNAL_ERROR = 1011


class ConnectionState(Enum):
    """State of one end of a relay session."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ConnectionState.CLOSED, ConnectionState.ERROR)


class Side(Enum):
    DOWNSTREAM = "downstream"
    UPSTREAM = "upstream"


class EventKind(Enum):
    OPEN = "open"
    MESSAGE = "message"
    CLOSED = "closed"
    ERROR = "error"


class Connection(Protocol):
    """One end of a relay session, as seen by the session."""

    async def send(self, payload: Payload) -> None: ...

    async def close(self, code: int, reason: str) -> None: ...

    def events(self) -> AsyncIterator[RelayEvent]: ...


@dataclass(frozen=True)
class RelayEvent:
    """Something that happened on one end of a session."""

    side: Side
    kind: EventKind
    payload: Payload | None = None
    code: int | None = None
    reason: str = ""
    error: BaseException | None = None
    connection: Connection | None = None

    @classmethod
    def opened(cls, side: Side, connection: Connection) -> RelayEvent:
        return cls(side=side, kind=EventKind.OPEN, connection=connection)

    @classmethod
    def message(cls, side: Side, payload: Payload) -> RelayEvent:
        return cls(side=side, kind=EventKind.MESSAGE, payload=payload)

    @classmethod
    def closed(cls, side: Side, code: int | None, reason: str = "") -> RelayEvent:
        return cls(side=side, kind=EventKind.CLOSED, code=code, reason=reason or "")

    @classmethod
    def failed(cls, side: Side, error: BaseException | None) -> RelayEvent:
        return cls(side=side, kind=EventKind.ERROR, error=error)


def wire_close_code(code: int | None) -> int:
    """Translate a received close code into one that may be sent to the peer."""
    if code is None or code in (ABNORMAL_CLOSURE, TLS_HANDSHAKE):
        return INTERNAL_ERROR
    # aiohttp reports a close frame without a status as 0.
    if code in (0, NO_STATUS_RECEIVED):
        return NORMAL_CLOSURE
    return code
