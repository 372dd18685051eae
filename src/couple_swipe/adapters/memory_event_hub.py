"""In-process fan-out of session events to connected subscribers."""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from uuid import UUID

from couple_swipe.domain.events import SessionEvent
from couple_swipe.services.broadcaster import EventTransport

_logger = logging.getLogger(__name__)


@dataclass(eq=False)
class _Subscriber:
    queue: asyncio.Queue[SessionEvent | None]
    loop: asyncio.AbstractEventLoop


@dataclass
class Subscription:
    """Stream of events for one subscriber on one channel."""

    channel: UUID
    _subscriber: _Subscriber

    async def next_event(self) -> SessionEvent | None:
        """Wait for the next event.

        Returns None when the subscriber fell behind and events were
        dropped; the consumer must resync before continuing.
        """
        return await self._subscriber.queue.get()


@dataclass
class InMemoryEventHub(EventTransport):
    """Per-channel publish/subscribe hub.

    Publishers may run on any thread or event loop; each event is handed to
    the subscriber's own loop.
    """

    queue_size: int = 100
    _subscribers: dict[UUID, list[_Subscriber]] = field(
        default_factory=dict, repr=False
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    async def publish(self, event: SessionEvent) -> None:
        """Deliver an event to every current subscriber of its channel."""
        with self._lock:
            subscribers = list(self._subscribers.get(event.channel, []))
        for subscriber in subscribers:
            try:
                subscriber.loop.call_soon_threadsafe(_offer, subscriber, event)
            except RuntimeError:
                _logger.warning(
                    "Dropping subscriber on closed loop for %s", event.channel
                )
                self._remove(event.channel, subscriber)

    @asynccontextmanager
    async def subscribe(self, channel: UUID) -> AsyncIterator[Subscription]:
        """Subscribe to a channel for the lifetime of the context."""
        subscriber = _Subscriber(
            queue=asyncio.Queue(maxsize=self.queue_size),
            loop=asyncio.get_running_loop(),
        )
        with self._lock:
            self._subscribers.setdefault(channel, []).append(subscriber)
        try:
            yield Subscription(channel=channel, _subscriber=subscriber)
        finally:
            self._remove(channel, subscriber)

    def subscriber_count(self, channel: UUID) -> int:
        """Return the number of live subscribers on a channel."""
        with self._lock:
            return len(self._subscribers.get(channel, []))

    def _remove(self, channel: UUID, subscriber: _Subscriber) -> None:
        with self._lock:
            subscribers = self._subscribers.get(channel, [])
            if subscriber in subscribers:
                subscribers.remove(subscriber)
            if not subscribers:
                self._subscribers.pop(channel, None)


def _offer(subscriber: _Subscriber, event: SessionEvent) -> None:
    """Enqueue an event; on overflow replace the backlog with a resync marker."""
    try:
        subscriber.queue.put_nowait(event)
    except asyncio.QueueFull:
        while not subscriber.queue.empty():
            subscriber.queue.get_nowait()
        subscriber.queue.put_nowait(None)
