"""
Server-side state management.

The approval engine, queue and prompt surface are created in the application
lifespan and registered here for the route handlers.
"""

from ..approvals.engine import ApprovalEngine
from ..approvals.prompts import EventBusPromptSurface
from ..approvals.queue import ApprovalQueue

# =============================================================================
# Approval Engine
# =============================================================================

_engine: ApprovalEngine | None = None


def set_engine(engine: ApprovalEngine | None) -> None:
    global _engine
    _engine = engine


def get_engine() -> ApprovalEngine | None:
    return _engine


# =============================================================================
# Prompting
# =============================================================================

_prompt_surface: EventBusPromptSurface | None = None
_queue: ApprovalQueue | None = None


def set_prompt_surface(surface: EventBusPromptSurface | None) -> None:
    global _prompt_surface
    _prompt_surface = surface


def get_prompt_surface() -> EventBusPromptSurface | None:
    return _prompt_surface


def set_queue(queue: ApprovalQueue | None) -> None:
    global _queue
    _queue = queue


def get_queue() -> ApprovalQueue | None:
    return _queue
