"""Bidirectional WebSocket relay."""

from .buffer import MessageBuffer
from .downstream import DownstreamEndpoint
from .events import ConnectionState, EventKind, RelayEvent, Side, wire_close_code
from .session import RelaySession
from .upstream import UpstreamConnector, UpstreamEndpoint, build_target_url

__all__ = [
    "ConnectionState",
    "DownstreamEndpoint",
    "EventKind",
    "MessageBuffer",
    "RelayEvent",
    "RelaySession",
    "Side",
    "UpstreamConnector",
    "UpstreamEndpoint",
    "build_target_url",
    "wire_close_code",
]
