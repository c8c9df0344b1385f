"""Shared helpers for route handlers."""

from fastapi import HTTPException

from ...approvals.engine import ApprovalEngine
from ...approvals.models import Scope
from ...exceptions import NoProjectOpenError, NotFoundError
from ..state import get_engine


def require_engine() -> ApprovalEngine:
    engine = get_engine()
    if engine is None:
        raise HTTPException(status_code=500, detail="Approval engine not initialized")
    return engine


def raise_for_failed_update(engine: ApprovalEngine, scope: Scope, session_id: str | None) -> None:
    """
    Turn a failed engine mutation into the matching error.

    Raises:
        NoProjectOpenError: Project scope with no project open
        NotFoundError: Session scope for an unknown session
        HTTPException: The config document could not be written
    """
    if scope == Scope.PROJECT and engine.store.first_project_root() is None:
        raise NoProjectOpenError()
    if scope == Scope.SESSION:
        raise NotFoundError("Session", session_id or "")
    raise HTTPException(status_code=500, detail=f"Failed to write {scope.value} approval config")
