"""
HTTP API around the approval engine.

Exposes rule management, session tools, the interactive approval endpoints
and an SSE stream of approval events.
"""

from .app import app
from .routes import register_routes
from .state import get_engine, get_prompt_surface, get_queue, set_engine, set_prompt_surface, set_queue

# Register all routes with the app
register_routes(app)

__all__ = ["app", "set_engine", "get_engine", "set_prompt_surface", "get_prompt_surface", "set_queue", "get_queue"]
