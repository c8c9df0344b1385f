"""Rule listing and management endpoints."""

from typing import Literal

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from ...approvals.models import CommandRule, PathRule, Scope
from ..requests import EditRuleRequest, RuleRequest
from .deps import raise_for_failed_update, require_engine

router = APIRouter()

RuleKind = Literal["command", "path", "write"]


def _build_rule(kind: RuleKind, pattern: str, mode: str) -> CommandRule | PathRule:
    model = CommandRule if kind == "command" else PathRule
    try:
        return model(pattern=pattern, mode=mode)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid {kind} rule: {e.errors()[0]['msg']}")


def _require_session_id(scope: Scope, session_id: str | None) -> None:
    if scope == Scope.SESSION and not session_id:
        raise HTTPException(status_code=422, detail="session_id is required for session scope")


@router.get("/session/{sessionID}/rules")
async def list_rules(sessionID: str) -> dict:
    """
    List every rule visible to a session, grouped by kind and scope.

    Args:
        sessionID: The session ID

    Returns:
        {"command": {...}, "path": {...}, "write": {...}} with session/project/global lists
    """
    engine = require_engine()
    return {
        "command": engine.get_command_rules(sessionID).model_dump(mode="json", by_alias=True),
        "path": engine.get_path_rules(sessionID).model_dump(mode="json", by_alias=True),
        "write": engine.get_write_rules(sessionID).model_dump(mode="json", by_alias=True),
    }


@router.post("/rules/{kind}")
async def add_rule(kind: RuleKind, request: RuleRequest) -> dict:
    """Add a rule. Adding an existing (pattern, mode) is a no-op."""
    engine = require_engine()
    _require_session_id(request.scope, request.session_id)
    rule = _build_rule(kind, request.pattern, request.mode)

    adder = getattr(engine, f"add_{kind}_rule")
    if not adder(request.session_id or "", rule, request.scope):
        raise_for_failed_update(engine, request.scope, request.session_id)
    return {"success": True}


@router.put("/rules/{kind}")
async def edit_rule(kind: RuleKind, request: EditRuleRequest) -> dict:
    """Replace the first rule whose pattern equals old_pattern."""
    engine = require_engine()
    _require_session_id(request.scope, request.session_id)
    rule = _build_rule(kind, request.pattern, request.mode)

    editor = getattr(engine, f"edit_{kind}_rule")
    if not editor(request.old_pattern, rule, request.scope, request.session_id):
        raise_for_failed_update(engine, request.scope, request.session_id)
    return {"success": True}


@router.delete("/rules/{kind}")
async def remove_rule(
    kind: RuleKind,
    scope: Scope = Query(...),
    pattern: str = Query(...),
    session_id: str | None = Query(None),
) -> dict:
    """Remove every rule of this kind whose pattern equals pattern."""
    engine = require_engine()
    _require_session_id(scope, session_id)

    remover = getattr(engine, f"remove_{kind}_rule")
    if not remover(pattern, scope, session_id):
        raise_for_failed_update(engine, scope, session_id)
    return {"success": True}


@router.get("/session/{sessionID}/command/match")
async def match_command(sessionID: str, command: str = Query(...)) -> dict:
    """
    Report which rule, if any, already approves a command.

    Returns:
        {"approved": bool, "match": {"rule": ..., "scope": ...} or None}
    """
    engine = require_engine()
    match = engine.find_matching_command_rule(sessionID, command)
    return {
        "approved": match is not None,
        "match": match.model_dump(mode="json") if match is not None else None,
    }
