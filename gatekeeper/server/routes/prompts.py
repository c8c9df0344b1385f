"""Pending prompt endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from ..state import get_prompt_surface, get_queue

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_surface():
    surface = get_prompt_surface()
    if surface is None:
        raise HTTPException(status_code=500, detail="Prompt surface not initialized")
    return surface


@router.get("/approval/pending")
async def list_pending() -> dict:
    """List prompts waiting for an answer and the queue depth behind them."""
    surface = _require_surface()
    queue = get_queue()
    return {
        "requests": surface.pending_requests(),
        "queued": queue.pending if queue is not None else 0,
        "active": queue.active_label if queue is not None else None,
    }


@router.post("/approval/{requestID}/respond")
async def respond(requestID: str, response: dict[str, Any]) -> dict:
    """
    Answer a pending prompt.

    Args:
        requestID: ID from the approval.requested event
        response: Decision payload matching the request kind

    Returns:
        Success confirmation
    """
    surface = _require_surface()
    try:
        surface.respond(requestID, response)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    logger.info("Approval response for %s: %s", requestID, response.get("decision"))
    return {"success": True}


@router.post("/approval/reject-all")
async def reject_all() -> dict:
    """Deny the active prompt and everything queued behind it."""
    queue = get_queue()
    if queue is None:
        raise HTTPException(status_code=500, detail="Approval queue not initialized")
    queue.reject_all()
    return {"success": True}
