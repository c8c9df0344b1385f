"""
SSE-based EventBus implementation.

Approval prompts and change notifications are published here and streamed
to connected clients by the /global/event endpoint.
"""

import asyncio
import logging
from typing import Any

from ..events import Event

logger = logging.getLogger(__name__)

# Events buffered per subscriber before the oldest is dropped
SUBSCRIBER_QUEUE_SIZE = 256


class SSEEventBus:
    """
    EventBus implementation that broadcasts events to SSE subscribers.

    Each subscriber gets a bounded queue. A subscriber that stops reading
    loses its oldest events rather than blocking publishers.
    """

    def __init__(self) -> None:
        self.subscribers: list[asyncio.Queue[dict[str, Any]]] = []

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        data = event.model_dump(mode="json")
        for queue in list(self.subscribers):
            if queue.full():
                queue.get_nowait()
                logger.warning("Event subscriber is falling behind; dropped oldest event")
            queue.put_nowait(data)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        """
        Create a new subscription queue.

        Returns:
            A queue that will receive all published events
        """
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self.subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        if queue in self.subscribers:
            self.subscribers.remove(queue)


_event_bus: SSEEventBus | None = None


def get_event_bus() -> SSEEventBus:
    """Get the global event bus instance, creating it if necessary."""
    global _event_bus
    if _event_bus is None:
        _event_bus = SSEEventBus()
    return _event_bus
