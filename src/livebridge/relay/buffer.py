"""Ordered buffer for messages sent before the upstream is open."""

from __future__ import annotations

from collections import deque
from typing import Protocol

Payload = str | bytes


class Sender(Protocol):
    async def send(self, payload: Payload) -> None: ...


class MessageBuffer:
    """FIFO of downstream payloads awaiting the upstream open transition.

    The buffer is drained exactly once. Payloads are never inspected.
    """

    def __init__(self) -> None:
        self._pending: deque[Payload] = deque()
        self._drained = False

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def drained(self) -> bool:
        return self._drained

    def enqueue(self, payload: Payload) -> None:
        self._pending.append(payload)

    async def drain_into(self, connection: Sender) -> int:
        """Send every buffered payload to ``connection`` in enqueue order.

        Returns the number of payloads sent. A send failure propagates; the
        payloads not yet sent are discarded with the buffer.
        """
        if self._drained:
            raise RuntimeError("Message buffer already drained")
        self._drained = True

        sent = 0
        try:
            while self._pending:
                await connection.send(self._pending.popleft())
                sent += 1
        finally:
            self._pending.clear()
        return sent
