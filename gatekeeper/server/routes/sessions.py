"""Session endpoints."""

from fastapi import APIRouter

from .deps import require_engine

router = APIRouter()


@router.get("/session")
async def list_sessions() -> list[dict]:
    """List live sessions with their rule counts."""
    engine = require_engine()
    return [summary.model_dump(mode="json") for summary in engine.get_active_sessions()]


@router.delete("/session/{sessionID}")
async def clear_session(sessionID: str) -> dict:
    """Discard every session-scoped approval of a session."""
    engine = require_engine()
    engine.clear_session(sessionID)
    return {"success": True}


@router.delete("/session/{sessionID}/rules/command")
async def clear_session_command_rules(sessionID: str) -> dict:
    engine = require_engine()
    engine.clear_session_command_rules(sessionID)
    return {"success": True}
