"""Blanket write approval endpoints."""

from fastapi import APIRouter, HTTPException

from ..requests import WriteApprovalRequest
from .deps import raise_for_failed_update, require_engine

router = APIRouter()


@router.get("/session/{sessionID}/write-approval")
async def get_write_approval(sessionID: str) -> dict:
    """Return which scope holds a blanket write approval ("prompt" if none)."""
    engine = require_engine()
    return {"state": engine.get_write_approval_state(sessionID)}


@router.put("/session/{sessionID}/write-approval")
async def set_write_approval(sessionID: str, request: WriteApprovalRequest) -> dict:
    engine = require_engine()
    if not engine.set_write_approval(sessionID, request.scope):
        raise_for_failed_update(engine, request.scope, sessionID)
    return {"success": True, "state": engine.get_write_approval_state(sessionID)}


@router.delete("/write-approval")
async def reset_write_approval() -> dict:
    """Clear the blanket write flag in every scope."""
    engine = require_engine()
    if not engine.reset_write_approval():
        raise HTTPException(status_code=500, detail="Failed to write approval config")
    return {"success": True}
