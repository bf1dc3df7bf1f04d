"""Client-facing end of a relay session, backed by an aiohttp WebSocketResponse."""

from __future__ import annotations

from collections.abc import AsyncIterator

from aiohttp import WSMsgType, web

from livebridge.relay.events import ABNORMAL_CLOSURE, Payload, RelayEvent, Side


class DownstreamEndpoint:
    """Adapts a prepared ``web.WebSocketResponse`` to the session's connection interface."""

    side = Side.DOWNSTREAM

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws

    async def send(self, payload: Payload) -> None:
        if isinstance(payload, str):
            await self._ws.send_str(payload)
        else:
            await self._ws.send_bytes(payload)

    async def close(self, code: int, reason: str) -> None:
        if not self._ws.closed:
            await self._ws.close(code=code, message=reason.encode("utf-8"))

    async def events(self) -> AsyncIterator[RelayEvent]:
        """Yield client messages until the client goes away.

        Always ends with exactly one CLOSED event.
        """
        while True:
            msg = await self._ws.receive()
            if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                yield RelayEvent.message(self.side, msg.data)
            elif msg.type == WSMsgType.CLOSE:
                yield RelayEvent.closed(self.side, msg.data, msg.extra or "")
                return
            elif msg.type in (WSMsgType.CLOSING, WSMsgType.CLOSED):
                yield RelayEvent.closed(self.side, self._ws.close_code or ABNORMAL_CLOSURE)
                return
            elif msg.type == WSMsgType.ERROR:
                yield RelayEvent.failed(self.side, self._ws.exception())
                yield RelayEvent.closed(self.side, self._ws.close_code or ABNORMAL_CLOSURE)
                return
