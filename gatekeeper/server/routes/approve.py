"""
Approval endpoints used by the agent.

Each call returns immediately when a rule already approves the action, and
otherwise blocks until the human answers the prompt (or it times out).
"""

from fastapi import APIRouter, HTTPException

from ...approvals.flows import ApprovalResult, approve_command, approve_path_access, approve_write
from ..requests import CommandCheckRequest, PathCheckRequest, WriteCheckRequest
from ..state import get_prompt_surface, get_queue
from .deps import require_engine

router = APIRouter()


def _require_prompting():
    surface = get_prompt_surface()
    queue = get_queue()
    if surface is None or queue is None:
        raise HTTPException(status_code=500, detail="Prompt surface not initialized")
    return queue, surface


@router.post("/session/{sessionID}/approve/command")
async def approve_command_route(sessionID: str, request: CommandCheckRequest) -> ApprovalResult:
    engine = require_engine()
    queue, surface = _require_prompting()
    engine.touch_session(sessionID)
    return await approve_command(engine, queue, surface, sessionID, request.command)


@router.post("/session/{sessionID}/approve/path")
async def approve_path_route(sessionID: str, request: PathCheckRequest) -> ApprovalResult:
    engine = require_engine()
    queue, surface = _require_prompting()
    engine.touch_session(sessionID)
    return await approve_path_access(engine, queue, surface, sessionID, request.file_path)


@router.post("/session/{sessionID}/approve/write")
async def approve_write_route(sessionID: str, request: WriteCheckRequest) -> ApprovalResult:
    engine = require_engine()
    queue, surface = _require_prompting()
    engine.touch_session(sessionID)
    return await approve_write(
        engine, queue, surface, sessionID, request.file_path, request.operation, request.summary
    )
