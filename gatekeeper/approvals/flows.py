"""
Interactive approval flows.

Each flow checks the engine first, and only when nothing is pre-approved asks
the human through the prompt surface. The prompt and the rule it records run
as a single unit on the approval queue, so concurrent requests never overlap.
"""

import logging
import os
import uuid

from pydantic import BaseModel

from .commands import expand_sub_commands, split_compound_command
from .engine import ApprovalEngine
from .models import CommandRule, PathMode, PathRule, Scope
from .prompts import (
    CommandApprovalRequest,
    CommandDecision,
    PathApprovalRequest,
    PathDecision,
    PromptSurface,
    TrustScope,
    WriteApprovalRequest,
    WriteDecision,
)
from .queue import ApprovalQueue

logger = logging.getLogger(__name__)

_COMMAND_SCOPES = {
    CommandDecision.SESSION: Scope.SESSION,
    CommandDecision.PROJECT: Scope.PROJECT,
    CommandDecision.GLOBAL: Scope.GLOBAL,
}

_PATH_SCOPES = {
    PathDecision.ALLOW_SESSION: Scope.SESSION,
    PathDecision.ALLOW_PROJECT: Scope.PROJECT,
    PathDecision.ALLOW_ALWAYS: Scope.GLOBAL,
}

_WRITE_SCOPES = {
    WriteDecision.ACCEPT_SESSION: Scope.SESSION,
    WriteDecision.ACCEPT_PROJECT: Scope.PROJECT,
    WriteDecision.ACCEPT_ALWAYS: Scope.GLOBAL,
}


class ApprovalResult(BaseModel):
    """Outcome of an approval flow."""

    approved: bool
    reason: str | None = None
    edited_command: str | None = None


DENIED = ApprovalResult(approved=False)


def _parent_dir_prefix(file_path: str) -> str:
    return os.path.join(os.path.dirname(file_path), "")


async def approve_command(
    engine: ApprovalEngine,
    queue: ApprovalQueue,
    prompt: PromptSurface,
    session_id: str,
    command: str,
) -> ApprovalResult:
    """
    Approve a command line, prompting once for every unapproved part.

    The line is split into sub-commands and wrappers are expanded, so
    "sudo rm -rf x" needs both "sudo" and "rm -rf x" approved. A trust
    decision records either the per-sub-command rules the human chose
    (skipping those marked "skip") or a single rule, at the chosen scope.

    Args:
        engine: Approval engine holding the rules
        queue: Queue serializing prompts
        prompt: Surface asking the human
        session_id: The session ID
        command: Full command line

    Returns:
        ApprovalResult, with edited_command set if the human changed the command
    """
    parts = expand_sub_commands(split_compound_command(command))
    unapproved = [p for p in parts if not engine.is_command_approved(session_id, p)]
    if not unapproved:
        return ApprovalResult(approved=True)

    matches = [engine.find_matching_command_rule(session_id, p) for p in parts]
    request = CommandApprovalRequest(
        id=str(uuid.uuid4()),
        session_id=session_id,
        command=command,
        sub_commands=unapproved if len(unapproved) > 1 else None,
        already_trusted=[m for m in matches if m is not None],
    )

    async def run() -> ApprovalResult:
        response = await prompt.request_command_approval(request)

        if response.decision == CommandDecision.REJECT:
            return ApprovalResult(approved=False, reason=response.rejection_reason)

        scope = _COMMAND_SCOPES.get(response.decision)
        if scope is not None:
            if response.rules:
                for rule in response.rules:
                    if rule.mode == "skip" or not rule.pattern:
                        continue
                    engine.add_command_rule(session_id, CommandRule(pattern=rule.pattern, mode=rule.mode), scope)
            elif response.rule_pattern and response.rule_mode:
                engine.add_command_rule(
                    session_id, CommandRule(pattern=response.rule_pattern, mode=response.rule_mode), scope
                )

        return ApprovalResult(approved=True, edited_command=response.edited_command or None)

    logger.debug("Requesting approval for command: %s (%d unapproved part(s))", command, len(unapproved))
    return await queue.submit("Command approval", run, default=DENIED)


async def approve_path_access(
    engine: ApprovalEngine,
    queue: ApprovalQueue,
    prompt: PromptSurface,
    session_id: str,
    file_path: str,
) -> ApprovalResult:
    """
    Approve access to a path outside the project.

    A trust decision records the rule the human chose, or by default a prefix
    rule on the path's parent directory.
    """
    if engine.is_path_trusted(session_id, file_path):
        return ApprovalResult(approved=True)

    request = PathApprovalRequest(id=str(uuid.uuid4()), session_id=session_id, file_path=file_path)

    async def run() -> ApprovalResult:
        response = await prompt.request_path_approval(request)

        if response.decision == PathDecision.REJECT:
            return ApprovalResult(approved=False, reason=response.rejection_reason)

        scope = _PATH_SCOPES.get(response.decision)
        if scope is not None:
            rule = PathRule(
                pattern=(response.rule_pattern or "").strip() or _parent_dir_prefix(file_path),
                mode=response.rule_mode or PathMode.PREFIX,
            )
            engine.add_path_rule(session_id, rule, scope)
        return ApprovalResult(approved=True)

    return await queue.submit("Path access approval", run, default=DENIED)


async def approve_write(
    engine: ApprovalEngine,
    queue: ApprovalQueue,
    prompt: PromptSurface,
    session_id: str,
    file_path: str,
    operation: str = "modify",
    summary: str | None = None,
) -> ApprovalResult:
    """
    Approve a write to file_path.

    For a trust decision inside the project, the trust scope picks what is
    remembered: all files (blanket flag), this file (exact rule on the
    relative path) or an explicit pattern. Outside the project the rule
    defaults to a prefix on the parent directory and is also recorded as a
    path rule so later reads are trusted.

    Args:
        engine: Approval engine holding the rules
        queue: Queue serializing prompts
        prompt: Surface asking the human
        session_id: The session ID
        file_path: Absolute path of the file being written
        operation: "create", "modify" or "rename"
        summary: Optional description shown with the prompt

    Returns:
        ApprovalResult
    """
    if engine.is_write_approved(session_id, file_path):
        return ApprovalResult(approved=True)

    rel_path = engine.relative_path(file_path)
    outside_project = rel_path == file_path and os.path.isabs(file_path)
    request = WriteApprovalRequest(
        id=str(uuid.uuid4()),
        session_id=session_id,
        file_path=file_path,
        relative_path=rel_path,
        operation=operation,
        outside_project=outside_project,
        summary=summary,
    )

    async def run() -> ApprovalResult:
        response = await prompt.request_write_approval(request)

        if response.decision == WriteDecision.REJECT:
            return ApprovalResult(approved=False, reason=response.rejection_reason)

        scope = _WRITE_SCOPES.get(response.decision)
        if scope is None:
            return ApprovalResult(approved=True)

        explicit = (response.rule_pattern or "").strip()
        if outside_project:
            rule = PathRule(
                pattern=explicit or _parent_dir_prefix(file_path),
                mode=response.rule_mode or PathMode.PREFIX,
            )
            engine.add_write_rule(session_id, rule, scope)
            engine.add_path_rule(session_id, rule, scope)
        elif response.trust_scope == TrustScope.ALL_FILES:
            engine.set_write_approval(session_id, scope)
        elif response.trust_scope == TrustScope.THIS_FILE:
            engine.add_write_rule(session_id, PathRule(pattern=rel_path, mode=PathMode.EXACT), scope)
        elif response.trust_scope == TrustScope.PATTERN and explicit:
            rule = PathRule(pattern=explicit, mode=response.rule_mode or PathMode.GLOB)
            engine.add_write_rule(session_id, rule, scope)
        # No trust scope chosen: accept this write without remembering it
        return ApprovalResult(approved=True)

    return await queue.submit("Write approval", run, default=DENIED)
