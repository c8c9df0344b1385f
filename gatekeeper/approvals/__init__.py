"""
Approval system for agent actions.

Decides whether shell commands, accesses to paths outside the project and
file writes are pre-approved by session, project or global rules, and runs
the interactive prompt when they are not.
"""

from .commands import expand_sub_commands, split_compound_command, tokenize, unwrap_command
from .engine import ApprovalEngine
from .flows import ApprovalResult, approve_command, approve_path_access, approve_write
from .legacy import JsonStateStore, LegacyStateStore
from .models import (
    CommandMode,
    CommandRule,
    CommandRuleListing,
    ConfigDocument,
    PathMode,
    PathRule,
    PathRuleListing,
    RuleMatch,
    Scope,
    SessionState,
    SessionSummary,
    WriteApprovalState,
)
from .patterns import match_glob, matches_command_rule, matches_path_rule
from .prompts import (
    CommandApprovalRequest,
    CommandApprovalResponse,
    CommandDecision,
    EventBusPromptSurface,
    PathApprovalRequest,
    PathApprovalResponse,
    PathDecision,
    PromptSurface,
    TrustScope,
    WriteApprovalRequest,
    WriteApprovalResponse,
    WriteDecision,
)
from .queue import ApprovalQueue
from .store import ConfigStore

__all__ = [
    # Models
    "Scope",
    "CommandMode",
    "PathMode",
    "CommandRule",
    "PathRule",
    "ConfigDocument",
    "SessionState",
    "RuleMatch",
    "CommandRuleListing",
    "PathRuleListing",
    "SessionSummary",
    "WriteApprovalState",
    # Matching
    "matches_command_rule",
    "matches_path_rule",
    "match_glob",
    # Command decomposition
    "split_compound_command",
    "tokenize",
    "unwrap_command",
    "expand_sub_commands",
    # Persistence
    "ConfigStore",
    "LegacyStateStore",
    "JsonStateStore",
    # Engine
    "ApprovalEngine",
    # Prompting
    "ApprovalQueue",
    "PromptSurface",
    "EventBusPromptSurface",
    "CommandApprovalRequest",
    "CommandApprovalResponse",
    "CommandDecision",
    "PathApprovalRequest",
    "PathApprovalResponse",
    "PathDecision",
    "WriteApprovalRequest",
    "WriteApprovalResponse",
    "WriteDecision",
    "TrustScope",
    # Flows
    "ApprovalResult",
    "approve_command",
    "approve_path_access",
    "approve_write",
]
