"""Broadcast hub — fans JSON messages out to WebSocket subscribers.

``publish()`` never blocks the caller: every subscriber has a bounded
queue, and a subscriber whose queue is full is dropped.
"""

import asyncio
import json
import logging
from typing import Optional

logger = logging.getLogger("marketengine")

_CLIENT_QUEUE_SIZE = 256


class Subscriber:
    """One connected client's outbound message queue."""

    def __init__(self, maxsize: int = _CLIENT_QUEUE_SIZE) -> None:
        self.queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    async def next_message(self) -> Optional[str]:
        """Next payload, or ``None`` once the subscriber has been dropped."""
        return await self.queue.get()


class Hub:
    """Set of subscribers sharing one broadcast stream."""

    def __init__(self, client_queue_size: int = _CLIENT_QUEUE_SIZE) -> None:
        self._client_queue_size = client_queue_size
        self._subscribers: set[Subscriber] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def register(self) -> Subscriber:
        sub = Subscriber(self._client_queue_size)
        self._subscribers.add(sub)
        return sub

    def unregister(self, sub: Subscriber) -> None:
        self._subscribers.discard(sub)
        sub.closed = True
        # A full queue is drained by the sender, which then sees ``closed``.
        if not sub.queue.full():
            sub.queue.put_nowait(None)

    def publish(self, message: dict) -> None:
        """Serialize *message* and queue it for every subscriber."""
        self.publish_json(json.dumps(message))

    def publish_json(self, payload: str) -> None:
        for sub in list(self._subscribers):
            try:
                sub.queue.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning("dropping slow websocket subscriber")
                self.unregister(sub)

    def close(self) -> None:
        """Drop every subscriber."""
        for sub in list(self._subscribers):
            self.unregister(sub)
