"""Broadcast hub — in-process fan-out from the relay to WebSocket sessions.

Learn: One producer (the relay pipeline) publishes, any number of
consumers (one per WebSocket) read. The hub keeps a small ring of the
last `capacity` messages and every consumer keeps its own cursor into
the global sequence of published messages:

    seq:    0  1  2 [3  4  5  6  7]   ← ring holds head..tail-1
                     head          tail

- publish() appends to the ring and wakes waiting consumers. It never
  waits for anyone, so a slow WebSocket can't slow the relay or other
  clients.
- A consumer whose cursor fell out of the ring (cursor < head) gets
  HubLagged(skipped) once, then continues from the oldest message still
  retained.
- After close(), consumers drain what is left for them, then HubClosed.

Everything runs on one event loop, so the hub needs no locks: state only
changes between awaits.
"""

import asyncio
from collections import deque
from typing import Optional

import structlog

from rkse.schemas.relay import RelayMessage

logger = structlog.get_logger()

DEFAULT_CAPACITY = 5


class HubLagged(Exception):
    """The consumer was too slow; `skipped` messages were overwritten."""

    def __init__(self, skipped: int):
        super().__init__(f"consumer lagged, {skipped} messages skipped")
        self.skipped = skipped


class HubClosed(Exception):
    """The hub was closed; no further messages will arrive."""


class BroadcastHub:
    """Single-producer, multi-consumer broadcast with a bounded backlog."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._ring: deque[RelayMessage] = deque(maxlen=capacity)
        self._tail = 0  # sequence number of the next message to publish
        self._closed = False
        self._wakeup: Optional[asyncio.Event] = None
        self._consumers: set["HubConsumer"] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def consumer_count(self) -> int:
        return len(self._consumers)

    @property
    def _head(self) -> int:
        """Sequence number of the oldest retained message."""
        return self._tail - len(self._ring)

    def subscribe(self) -> "HubConsumer":
        """New consumer; it only sees messages published from now on."""
        consumer = HubConsumer(self, self._tail)
        self._consumers.add(consumer)
        return consumer

    def publish(self, message: RelayMessage) -> int:
        """Broadcast a message. Returns how many consumers are attached.

        Zero consumers is fine; the message just ages out of the ring.
        """
        if self._closed:
            raise HubClosed("publish on a closed hub")
        self._ring.append(message)
        self._tail += 1
        self._notify()
        return len(self._consumers)

    def close(self) -> None:
        """Signal end of stream to every consumer. Idempotent."""
        if self._closed:
            return
        self._closed = True
        logger.info("hub.closed", consumers=len(self._consumers))
        self._notify()

    def _detach(self, consumer: "HubConsumer") -> None:
        self._consumers.discard(consumer)

    def _notify(self) -> None:
        # Waiters hold a reference to the current event; a fresh one is
        # created by the next waiter.
        if self._wakeup is not None:
            self._wakeup.set()
            self._wakeup = None

    async def _wait(self) -> None:
        if self._wakeup is None:
            self._wakeup = asyncio.Event()
        await self._wakeup.wait()


class HubConsumer:
    """One reader of the hub with its own cursor.

    Use as a context manager (or call close()) to detach when done.
    """

    def __init__(self, hub: BroadcastHub, cursor: int):
        self._hub = hub
        self._cursor = cursor
        self._detached = False

    async def recv(self) -> RelayMessage:
        """Next message for this consumer.

        Raises HubLagged if messages were overwritten before we read them
        (the next call returns the oldest retained message), and HubClosed
        once the hub is closed and drained.
        """
        hub = self._hub
        while True:
            if self._detached:
                raise HubClosed("consumer detached")

            head = hub._head
            if self._cursor < head:
                skipped = head - self._cursor
                self._cursor = head
                raise HubLagged(skipped)

            if self._cursor < hub._tail:
                message = hub._ring[self._cursor - head]
                self._cursor += 1
                return message

            if hub.closed:
                raise HubClosed("hub closed")

            await hub._wait()

    def close(self) -> None:
        """Detach from the hub. Idempotent."""
        if not self._detached:
            self._detached = True
            self._hub._detach(self)

    def __enter__(self) -> "HubConsumer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
