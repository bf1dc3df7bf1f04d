"""Outbound WebSocket connection to the remote streaming endpoint.

Uses the `websockets` asyncio client. The target address is the configured
scheme and host followed by the inbound path and query string, unmodified.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import structlog
import websockets

from livebridge.core.exceptions import UpstreamConnectError
from livebridge.relay.events import ABNORMAL_CLOSURE, Payload, RelayEvent, Side

logger = structlog.get_logger()


def build_target_url(scheme: str, host: str, path: str, query_string: str = "") -> str:
    """Build the upstream address for an inbound request."""
    url = f"{scheme}://{host}{path}"
    if query_string:
        url = f"{url}?{query_string}"
    return url


class UpstreamEndpoint:
    """Adapts a `websockets` client connection to the session's connection interface."""

    side = Side.UPSTREAM

    def __init__(self, ws: Any) -> None:
        self._ws = ws

    async def send(self, payload: Payload) -> None:
        await self._ws.send(payload)

    async def close(self, code: int, reason: str) -> None:
        await self._ws.close(code, reason)

    async def events(self) -> AsyncIterator[RelayEvent]:
        """Yield remote messages until the remote goes away.

        A connection lost without a close frame is reported as an ERROR event
        first. Always ends with exactly one CLOSED event carrying the code the
        remote sent.
        """
        try:
            async for message in self._ws:
                yield RelayEvent.message(self.side, message)
        except websockets.ConnectionClosed as e:
            if e.rcvd is None:
                yield RelayEvent.failed(self.side, e)
        yield RelayEvent.closed(
            self.side,
            self._ws.close_code or ABNORMAL_CLOSURE,
            self._ws.close_reason or "",
        )


class UpstreamConnector:
    """Opens upstream connections for relay sessions."""

    def __init__(
        self,
        scheme: str = "wss",
        host: str = "generativelanguage.googleapis.com",
        connect_timeout: float | None = 30.0,
        max_message_size: int | None = 16 * 1024 * 1024,
        ping_interval: float | None = 20.0,
    ) -> None:
        self.scheme = scheme
        self.host = host
        self.connect_timeout = connect_timeout
        self.max_message_size = max_message_size
        self.ping_interval = ping_interval

    def target_for(self, path: str, query_string: str = "") -> str:
        return build_target_url(self.scheme, self.host, path, query_string)

    async def connect(self, url: str) -> UpstreamEndpoint:
        """Complete the upstream handshake.

        Raises:
            UpstreamConnectError: If the remote refuses, the network fails or
                the handshake times out.
        """
        try:
            ws = await websockets.connect(
                url,
                open_timeout=self.connect_timeout,
                max_size=self.max_message_size,
                ping_interval=self.ping_interval,
                close_timeout=5,
            )
        except (OSError, TimeoutError, websockets.WebSocketException) as e:
            raise UpstreamConnectError(url, str(e) or type(e).__name__) from e

        logger.info("Upstream connected", host=self.host)
        return UpstreamEndpoint(ws)
