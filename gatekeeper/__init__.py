"""
Gatekeeper: approval and authorization core for an autonomous coding agent.

The approvals package holds the transport-agnostic logic; the server package
provides HTTP bindings around it.
"""

from .events import ChangeNotifier, Event, EventBus, NullEventBus
from .exceptions import CoreError, InvalidOperationError, NoProjectOpenError, NotFoundError

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "CoreError",
    "NotFoundError",
    "InvalidOperationError",
    "NoProjectOpenError",
    # Events
    "Event",
    "EventBus",
    "NullEventBus",
    "ChangeNotifier",
]
