"""
Route registration for the approval API.
"""

from fastapi import FastAPI

from . import approve, events, health, prompts, rules, sessions, write


def register_routes(app: FastAPI) -> None:
    """Register all routes with the FastAPI application."""
    app.include_router(approve.router)
    app.include_router(events.router)
    app.include_router(health.router)
    app.include_router(prompts.router)
    app.include_router(rules.router)
    app.include_router(sessions.router)
    app.include_router(write.router)
