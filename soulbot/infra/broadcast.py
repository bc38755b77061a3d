from __future__ import annotations

import asyncio
import logging

from soulbot.domain.events import Event

log = logging.getLogger("soulbot.broadcast")


class EventBus:
    """Fan-out of session events to any number of viewers.

    Each subscriber owns a bounded queue; a slow viewer loses its oldest
    events instead of blocking the session writer.
    """

    def __init__(self, queue_size: int = 256):
        self._queue_size = max(1, int(queue_size))
        self._subscribers: set[asyncio.Queue] = set()
        self.published = 0

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._subscribers.discard(q)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: Event) -> None:
        self.published += 1
        for q in list(self._subscribers):
            if q.full():
                try:
                    q.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                log.debug("viewer queue full; dropped oldest event")
            q.put_nowait(event)
