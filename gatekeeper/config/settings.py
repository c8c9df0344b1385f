"""Host settings model."""

from pydantic import BaseModel, Field

from ..constants import PROMPT_TIMEOUT_SECONDS


class Settings(BaseModel):
    """Host-owned settings consulted (read-only) by the approval engine."""

    write_rules: list[str] = Field(
        default_factory=list,
        description="Glob patterns of files that may be written without asking",
    )
    prompt_timeout_seconds: float = Field(
        default=PROMPT_TIMEOUT_SECONDS,
        description="Seconds before an unanswered approval prompt is rejected",
    )
    log_level: str | None = Field(
        default=None,
        description="Log level override (falls back to LOG_LEVEL)",
    )
