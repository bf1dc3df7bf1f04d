"""Relay session: one downstream client paired with one upstream connection.

Each session is a single consumer task draining an event queue. One pump task
per connection feeds that queue, so all session state is touched by exactly
one task and no locking is needed.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from typing import Protocol
from uuid import uuid4

import structlog

from livebridge.core.exceptions import UpstreamConnectError
from livebridge.observability.metrics import (
    ACTIVE_SESSIONS,
    DROPPED_MESSAGES,
    UPSTREAM_FAILURES,
    WEBSOCKET_MESSAGES,
)
from livebridge.relay.buffer import MessageBuffer
from livebridge.relay.events import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    Connection,
    ConnectionState,
    EventKind,
    Payload,
    RelayEvent,
    Side,
    wire_close_code,
)

logger = structlog.get_logger()


class Connector(Protocol):
    def target_for(self, path: str, query_string: str = "") -> str: ...

    async def connect(self, url: str) -> Connection: ...


def _message_type(payload: Payload) -> str:
    return "text" if isinstance(payload, str) else "binary"


class RelaySession:
    """Forwards messages and lifecycle events between two connections."""

    def __init__(self, downstream: Connection, connector: Connector, target_url: str) -> None:
        self.id = uuid4()
        self.downstream = downstream
        self.upstream: Connection | None = None
        self.target_url = target_url
        self.downstream_state = ConnectionState.OPEN
        self.upstream_state = ConnectionState.CONNECTING
        self.buffer = MessageBuffer()
        self._connector = connector
        self._events: asyncio.Queue[RelayEvent] = asyncio.Queue()
        self._downstream_task: asyncio.Task | None = None
        self._upstream_task: asyncio.Task | None = None
        self._log = logger.bind(session=str(self.id)[:8])

    @property
    def terminated(self) -> bool:
        return self.downstream_state.is_terminal and self.upstream_state.is_terminal

    async def run(self) -> None:
        """Relay until both ends have reached a terminal state."""
        ACTIVE_SESSIONS.inc()
        self._log.info("Relay session started", target=self.target_url.split("?", 1)[0])
        self._downstream_task = asyncio.create_task(
            self._pump(Side.DOWNSTREAM, self.downstream.events())
        )
        self._upstream_task = asyncio.create_task(self._open_upstream())
        try:
            while not self.terminated:
                event = await self._events.get()
                await self.handle(event)
        finally:
            await self._release()
            ACTIVE_SESSIONS.dec()
            self._log.info("Relay session ended")

    async def handle(self, event: RelayEvent) -> None:
        """Apply one event to the session state machine."""
        if event.side is Side.UPSTREAM:
            if event.kind is EventKind.OPEN:
                await self._on_upstream_open(event)
            elif event.kind is EventKind.MESSAGE:
                await self._on_upstream_message(event.payload)
            elif event.kind is EventKind.CLOSED:
                await self._on_upstream_closed(event.code, event.reason)
            elif event.kind is EventKind.ERROR:
                self._on_upstream_error(event.error)
        else:
            if event.kind is EventKind.MESSAGE:
                await self._on_downstream_message(event.payload)
            elif event.kind is EventKind.CLOSED:
                await self._on_downstream_closed(event.code, event.reason)
            elif event.kind is EventKind.ERROR:
                self._log.warning("Downstream error", error=str(event.error))

    async def _pump(self, side: Side, events: AsyncIterator[RelayEvent]) -> None:
        try:
            async for event in events:
                await self._events.put(event)
        except Exception as e:
            # A transport failure still has to end that side of the session.
            await self._events.put(RelayEvent.failed(side, e))
            await self._events.put(RelayEvent.closed(side, ABNORMAL_CLOSURE))

    async def _open_upstream(self) -> None:
        try:
            upstream = await self._connector.connect(self.target_url)
        except UpstreamConnectError as e:
            UPSTREAM_FAILURES.inc()
            await self._events.put(RelayEvent.failed(Side.UPSTREAM, e))
            await self._events.put(RelayEvent.closed(Side.UPSTREAM, ABNORMAL_CLOSURE))
            return
        await self._events.put(RelayEvent.opened(Side.UPSTREAM, upstream))
        await self._pump(Side.UPSTREAM, upstream.events())

    async def _on_upstream_open(self, event: RelayEvent) -> None:
        connection = event.connection
        if self.upstream_state is not ConnectionState.CONNECTING:
            # Downstream left while the handshake was in flight.
            if connection is not None:
                with contextlib.suppress(Exception):
                    await connection.close(NORMAL_CLOSURE, "")
            return

        self.upstream = connection
        self.upstream_state = ConnectionState.OPEN
        pending = len(self.buffer)
        try:
            sent = await self.buffer.drain_into(connection)
        except Exception as e:
            self._log.warning("Failed to drain buffered messages", pending=pending, error=str(e))
            return
        if sent:
            self._log.info("Drained buffered messages", count=sent)

    async def _on_downstream_message(self, payload: Payload) -> None:
        kind = _message_type(payload)
        if self.upstream_state is ConnectionState.OPEN:
            try:
                await self.upstream.send(payload)
            except Exception as e:
                self._log.warning("Failed to forward message upstream", error=str(e))
                return
            WEBSOCKET_MESSAGES.labels(direction="in", type=kind).inc()
            self._log.debug("Client message forwarded", type=kind)
        elif self.upstream_state is ConnectionState.CONNECTING:
            self.buffer.enqueue(payload)
            self._log.debug("Client message buffered", type=kind, buffered=len(self.buffer))
        else:
            DROPPED_MESSAGES.labels(direction="in").inc()
            self._log.debug("Client message dropped, upstream gone", type=kind)

    async def _on_upstream_message(self, payload: Payload) -> None:
        kind = _message_type(payload)
        if self.downstream_state is not ConnectionState.OPEN:
            DROPPED_MESSAGES.labels(direction="out").inc()
            return
        try:
            await self.downstream.send(payload)
        except Exception as e:
            self._log.warning("Failed to forward message downstream", error=str(e))
            return
        WEBSOCKET_MESSAGES.labels(direction="out", type=kind).inc()
        self._log.debug("Upstream message forwarded", type=kind)

    async def _on_downstream_closed(self, code: int | None, reason: str) -> None:
        if self.downstream_state is ConnectionState.CLOSED:
            return
        self.downstream_state = ConnectionState.CLOSED
        self._log.info("Client connection closed", code=code, reason=reason)

        if self.upstream_state is ConnectionState.OPEN:
            self.upstream_state = ConnectionState.CLOSED
            with contextlib.suppress(Exception):
                await self.upstream.close(wire_close_code(code), reason)
        elif self.upstream_state is ConnectionState.CONNECTING:
            self.upstream_state = ConnectionState.CLOSED
            if self._upstream_task is not None:
                self._upstream_task.cancel()

    async def _on_upstream_closed(self, code: int | None, reason: str) -> None:
        if self.upstream_state is ConnectionState.CLOSED:
            return
        self.upstream_state = ConnectionState.CLOSED
        self._log.info("Upstream connection closed", code=code, reason=reason)

        if self.downstream_state is ConnectionState.OPEN:
            self.downstream_state = ConnectionState.CLOSED
            with contextlib.suppress(Exception):
                await self.downstream.close(wire_close_code(code), reason)

    def _on_upstream_error(self, error: BaseException | None) -> None:
        self._log.error("Upstream WebSocket error", error=str(error))
        if self.upstream_state is ConnectionState.CONNECTING:
            self.upstream_state = ConnectionState.ERROR

    async def _release(self) -> None:
        for task in (self._downstream_task, self._upstream_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        while not self._events.empty():
            event = self._events.get_nowait()
            if event.kind is EventKind.OPEN and event.connection is not None:
                # An upstream handshake that finished after the client left.
                with contextlib.suppress(Exception):
                    await event.connection.close(NORMAL_CLOSURE, "")
            elif event.side is Side.DOWNSTREAM and event.kind is EventKind.CLOSED:
                await self._on_downstream_closed(event.code, event.reason)
        # Reached only when run() is cancelled mid-session.
        if self.upstream is not None and self.upstream_state is ConnectionState.OPEN:
            self.upstream_state = ConnectionState.CLOSED
            with contextlib.suppress(Exception):
                await self.upstream.close(NORMAL_CLOSURE, "")
        if self.downstream_state is ConnectionState.OPEN:
            self.downstream_state = ConnectionState.CLOSED
            with contextlib.suppress(Exception):
                await self.downstream.close(NORMAL_CLOSURE, "")
