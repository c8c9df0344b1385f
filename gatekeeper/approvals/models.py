"""Approval system models."""

import json
from enum import Enum
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..constants import CONFIG_VERSION


class Scope(str, Enum):
    """Persistence/visibility tier of a rule."""

    SESSION = "session"
    PROJECT = "project"
    GLOBAL = "global"


class CommandMode(str, Enum):
    """How a command rule pattern is compared against a command."""

    EXACT = "exact"
    PREFIX = "prefix"
    REGEX = "regex"


class PathMode(str, Enum):
    """How a path rule pattern is compared against a path."""

    EXACT = "exact"
    PREFIX = "prefix"
    GLOB = "glob"


class CommandRule(BaseModel):
    """Pre-authorization for shell commands."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    mode: CommandMode


class PathRule(BaseModel):
    """Pre-authorization for file paths (trusted paths and write rules)."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    mode: PathMode


RuleT = TypeVar("RuleT", CommandRule, PathRule)

WriteApprovalState = Literal["prompt", "session", "project", "global"]


def dedupe_rules(rules: list[RuleT]) -> list[RuleT]:
    """Drop rules repeating an earlier (pattern, mode), keeping first occurrences."""
    seen: set[tuple[str, str]] = set()
    result: list[RuleT] = []
    for rule in rules:
        key = (rule.pattern, rule.mode.value)
        if key in seen:
            continue
        seen.add(key)
        result.append(rule)
    return result


class ConfigDocument(BaseModel):
    """
    Persisted approval document (global or per project).

    Field names on disk are camelCase; unset optional fields are omitted
    when serialized.
    """

    model_config = ConfigDict(populate_by_name=True)

    version: int = CONFIG_VERSION
    write_approved: bool | None = Field(default=None, alias="writeApproved")
    command_rules: list[CommandRule] | None = Field(default=None, alias="commandRules")
    path_rules: list[PathRule] | None = Field(default=None, alias="pathRules")
    write_rules: list[PathRule] | None = Field(default=None, alias="writeRules")

    def to_json(self) -> str:
        """Serialize pretty-printed with a trailing newline."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(data, indent=2) + "\n"


class SessionState(BaseModel):
    """Ephemeral approvals for one agent session. Never persisted."""

    write_approved: bool = False
    command_rules: list[CommandRule] = Field(default_factory=list)
    path_rules: list[PathRule] = Field(default_factory=list)
    write_rules: list[PathRule] = Field(default_factory=list)
    last_activity: float


class RuleMatch(BaseModel):
    """Which rule, in which scope, authorized a command."""

    rule: CommandRule
    scope: Scope


class CommandRuleListing(BaseModel):
    """Command rules of every scope visible to a session."""

    model_config = ConfigDict(populate_by_name=True)

    session: list[CommandRule] = Field(default_factory=list)
    project: list[CommandRule] = Field(default_factory=list)
    global_: list[CommandRule] = Field(default_factory=list, alias="global")


class PathRuleListing(BaseModel):
    """Path or write rules of every scope visible to a session."""

    model_config = ConfigDict(populate_by_name=True)

    session: list[PathRule] = Field(default_factory=list)
    project: list[PathRule] = Field(default_factory=list)
    global_: list[PathRule] = Field(default_factory=list, alias="global")
    settings: list[str] | None = None


class SessionSummary(BaseModel):
    """Overview of a live session for status displays."""

    id: str
    write_approved: bool
    command_rule_count: int
    path_rule_count: int
    write_rule_count: int
    last_activity: float
