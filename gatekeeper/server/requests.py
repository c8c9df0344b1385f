"""
HTTP request models for the API.
"""

from typing import Literal

from pydantic import BaseModel, Field

from ..approvals.models import Scope


class RuleRequest(BaseModel):
    """Add a rule at a scope. session_id is required for session scope."""

    scope: Scope
    pattern: str = Field(min_length=1)
    mode: str
    session_id: str | None = None


class EditRuleRequest(RuleRequest):
    """Replace the first rule whose pattern equals old_pattern."""

    old_pattern: str


class WriteApprovalRequest(BaseModel):
    scope: Scope


class CommandCheckRequest(BaseModel):
    command: str


class PathCheckRequest(BaseModel):
    file_path: str


class WriteCheckRequest(BaseModel):
    file_path: str
    operation: Literal["create", "modify", "rename"] = "modify"
    summary: str | None = None
