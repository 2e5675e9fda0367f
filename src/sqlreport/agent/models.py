"""
Records produced by one agent turn.

ProgressEvents are streamed to the caller while the turn runs; the TurnResult
is always the last item of the stream.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from ..errors import ErrorKind
from ..storage import ExportArtifact


class TurnState(str, Enum):
    """States of the reasoning loop. ERRORED is absorbing."""

    IDLE = "idle"
    REASONING = "reasoning"
    TOOL_CALL = "tool_call"
    OBSERVING = "observing"
    FINALIZING = "finalizing"
    DONE = "done"
    ERRORED = "errored"


class HistoryMessage(BaseModel):
    """One prior message of the thread."""

    role: Literal["user", "assistant"]
    content: str


class ProgressEvent(BaseModel):
    """Incremental progress report for the caller's UI."""

    step: str
    message: str
    percentage: int = Field(ge=0, le=100)
    terminal: bool = False


class ToolInvocation(BaseModel):
    """One tool call made during a turn, kept for audit and detail views."""

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: str | None = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None


class TurnError(BaseModel):
    kind: ErrorKind
    message: str


class TurnResult(BaseModel):
    """Final outcome of a turn: an answer or a classified error, never neither."""

    thread_id: str
    answer_text: str | None = None
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)
    exports: list[ExportArtifact] = Field(default_factory=list)
    error: TurnError | None = None
    provider: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
