"""Prompt surface contract and an event-bus based implementation.

The prompt surface shows one approval request to the human and returns their
decision. How it is rendered is up to the host; the approval core only relies
on the request/response models below.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

from ..constants import PROMPT_TIMEOUT_SECONDS
from ..events import Event, EventBus
from ..exceptions import NotFoundError
from .models import CommandMode, PathMode, RuleMatch

logger = logging.getLogger(__name__)


class ApprovalKind(str, Enum):
    COMMAND = "command"
    PATH = "path"
    WRITE = "write"


class CommandDecision(str, Enum):
    """User decision for a command approval."""

    RUN_ONCE = "run-once"
    EDIT = "edit"
    SESSION = "session"
    PROJECT = "project"
    GLOBAL = "global"
    REJECT = "reject"


class PathDecision(str, Enum):
    """User decision for access to a path outside the project."""

    ALLOW_ONCE = "allow-once"
    ALLOW_SESSION = "allow-session"
    ALLOW_PROJECT = "allow-project"
    ALLOW_ALWAYS = "allow-always"
    REJECT = "reject"


class WriteDecision(str, Enum):
    """User decision for a file write."""

    ACCEPT = "accept"
    ACCEPT_SESSION = "accept-session"
    ACCEPT_PROJECT = "accept-project"
    ACCEPT_ALWAYS = "accept-always"
    REJECT = "reject"


class TrustScope(str, Enum):
    """Which writes a remembered write decision covers."""

    ALL_FILES = "all-files"
    THIS_FILE = "this-file"
    PATTERN = "pattern"


class CommandApprovalRequest(BaseModel):
    """A command line waiting for approval."""

    id: str
    session_id: str
    command: str
    sub_commands: list[str] | None = None  # Unapproved parts of a compound command
    already_trusted: list[RuleMatch] = Field(default_factory=list)
    requested_at: float = Field(default_factory=time.time)


class PathApprovalRequest(BaseModel):
    """Access to a path outside the project waiting for approval."""

    id: str
    session_id: str
    file_path: str
    requested_at: float = Field(default_factory=time.time)


class WriteApprovalRequest(BaseModel):
    """A file write (or rename) waiting for approval."""

    id: str
    session_id: str
    file_path: str
    relative_path: str
    operation: Literal["create", "modify", "rename"] = "modify"
    outside_project: bool = False
    summary: str | None = None
    requested_at: float = Field(default_factory=time.time)


class SubCommandRule(BaseModel):
    """Per-sub-command rule chosen in a compound command approval."""

    pattern: str
    mode: Literal["exact", "prefix", "regex", "skip"]


class CommandApprovalResponse(BaseModel):
    decision: CommandDecision
    edited_command: str | None = None
    rejection_reason: str | None = None
    rule_pattern: str | None = None
    rule_mode: CommandMode | None = None
    rules: list[SubCommandRule] | None = None


class PathApprovalResponse(BaseModel):
    decision: PathDecision
    rejection_reason: str | None = None
    rule_pattern: str | None = None
    rule_mode: PathMode | None = None


class WriteApprovalResponse(BaseModel):
    decision: WriteDecision
    rejection_reason: str | None = None
    trust_scope: TrustScope | None = None
    rule_pattern: str | None = None
    rule_mode: PathMode | None = None


_RESPONSE_MODELS: dict[ApprovalKind, type[BaseModel]] = {
    ApprovalKind.COMMAND: CommandApprovalResponse,
    ApprovalKind.PATH: PathApprovalResponse,
    ApprovalKind.WRITE: WriteApprovalResponse,
}


class PromptSurface(Protocol):
    """Shows one approval request to the human and returns the decision."""

    async def request_command_approval(self, request: CommandApprovalRequest) -> CommandApprovalResponse:
        ...

    async def request_path_approval(self, request: PathApprovalRequest) -> PathApprovalResponse:
        ...

    async def request_write_approval(self, request: WriteApprovalRequest) -> WriteApprovalResponse:
        ...


class EventBusPromptSurface:
    """
    Prompt surface that publishes requests as events and waits for answers.

    A client subscribed to the event bus renders "approval.requested" events
    and answers through respond(). Unanswered requests are rejected after the
    timeout.
    """

    def __init__(self, event_bus: EventBus, timeout: float = PROMPT_TIMEOUT_SECONDS):
        """
        Initialize the prompt surface.

        Args:
            event_bus: Event bus for publishing approval events
            timeout: Seconds to wait for an answer before rejecting
        """
        self.event_bus = event_bus
        self.timeout = timeout
        # Request ID -> (kind, request, future awaiting the response)
        self._pending: dict[str, tuple[ApprovalKind, BaseModel, asyncio.Future]] = {}

    async def request_command_approval(self, request: CommandApprovalRequest) -> CommandApprovalResponse:
        return await self._ask(ApprovalKind.COMMAND, request, CommandApprovalResponse(decision=CommandDecision.REJECT))

    async def request_path_approval(self, request: PathApprovalRequest) -> PathApprovalResponse:
        return await self._ask(ApprovalKind.PATH, request, PathApprovalResponse(decision=PathDecision.REJECT))

    async def request_write_approval(self, request: WriteApprovalRequest) -> WriteApprovalResponse:
        return await self._ask(ApprovalKind.WRITE, request, WriteApprovalResponse(decision=WriteDecision.REJECT))

    def pending_requests(self) -> list[dict[str, Any]]:
        return [
            {"kind": kind.value, "request": request.model_dump(mode="json")}
            for kind, request, _ in self._pending.values()
        ]

    def respond(self, request_id: str, response: BaseModel | dict[str, Any]) -> None:
        """
        Deliver the human's answer to a pending request.

        Args:
            request_id: ID of the pending request
            response: Response model or raw dict for the request's kind

        Raises:
            NotFoundError: If no such request is pending
            pydantic.ValidationError: If the response does not fit the request kind
        """
        if request_id not in self._pending:
            raise NotFoundError("Approval request", request_id)
        kind, _, future = self._pending[request_id]
        model = _RESPONSE_MODELS[kind]
        data = response.model_dump() if isinstance(response, BaseModel) else response
        validated = model.model_validate(data)
        if not future.done():
            future.set_result(validated)
            logger.debug("Approval response received: %s -> %s", request_id, validated.decision)

    async def _ask(self, kind: ApprovalKind, request: Any, reject: Any) -> Any:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request.id] = (kind, request, future)

        await self.event_bus.publish(
            Event(
                type="approval.requested",
                properties={"kind": kind.value, "request": request.model_dump(mode="json")},
            )
        )

        try:
            response = await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Approval request timed out: %s", request.id)
            response = reject
        finally:
            self._pending.pop(request.id, None)

        await self.event_bus.publish(
            Event(
                type="approval.responded",
                properties={"request_id": request.id, "decision": response.decision.value},
            )
        )
        return response
