"""
Snapshot stream for mynotes.

A broadcast channel that remembers its latest value: every subscriber
gets the current snapshot first, then each published snapshot in order.
"""

import asyncio
import logging
from typing import Generic, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Marks the end of a subscription
_CLOSED = object()


class Subscription(Generic[T]):
    """One listener on a SnapshotStream. Iterate it with `async for`."""

    def __init__(self, stream: "SnapshotStream[T]"):
        self._stream = stream
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _push(self, item: object) -> None:
        self._queue.put_nowait(item)

    def pending(self) -> int:
        """Number of snapshots delivered but not yet read."""
        return self._queue.qsize()

    def close(self) -> None:
        """Detach from the stream. Iteration ends after queued snapshots."""
        if self.closed:
            return
        self.closed = True
        self._stream._detach(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> tuple[T, ...]:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class SnapshotStream(Generic[T]):
    """Broadcast of immutable list snapshots with replay of the last one."""

    def __init__(self) -> None:
        self._current: tuple[T, ...] = ()
        self._subscribers: list[Subscription[T]] = []

    @property
    def current(self) -> tuple[T, ...]:
        """The last published snapshot, or () if nothing was published."""
        return self._current

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, items: Sequence[T]) -> None:
        """Store a copy of items as the current snapshot and push it to all subscribers."""
        snapshot = tuple(items)
        self._current = snapshot
        for subscription in list(self._subscribers):
            subscription._push(snapshot)
        logger.debug(f"Published snapshot of {len(snapshot)} to {len(self._subscribers)} listeners")

    def subscribe(self) -> Subscription[T]:
        """Attach a new listener. Its first item is the current snapshot."""
        subscription: Subscription[T] = Subscription(self)
        subscription._push(self._current)
        self._subscribers.append(subscription)
        return subscription

    def _detach(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def close(self) -> None:
        """End every subscription."""
        for subscription in list(self._subscribers):
            subscription.close()
