"""
Event types, EventBus protocol and change notification.

The EventBus is an abstract interface that the approval core uses to publish
events (e.g. a pending prompt). The server layer provides a queue-based
implementation.

ChangeNotifier is the zero-payload "something changed" signal exposed by the
config store and the approval engine so that status displays can refresh.
"""

import logging
from typing import Any, Callable, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class Event(BaseModel):
    """Domain event that can be published to subscribers."""

    type: str
    properties: dict[str, Any]


class EventBus(Protocol):
    """Abstract interface for publishing events."""

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        ...


class NullEventBus:
    """No-op EventBus implementation for testing."""

    async def publish(self, event: Event) -> None:
        """Discard the event."""
        pass


class ChangeNotifier:
    """
    Observer registry for change notifications.

    Listeners are plain callables taking no arguments. The order in which
    listeners run is not guaranteed, and a failing listener never prevents
    the others from running.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            listener: Callable invoked on every change

        Returns:
            A function that unregisters the listener when called
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Remove a listener if it is registered."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def fire(self) -> None:
        """Notify every registered listener."""
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Change listener %r failed", listener)

    def clear(self) -> None:
        """Drop all listeners."""
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
