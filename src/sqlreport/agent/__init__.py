"""Reporting agent: backend registry, turn records and the bounded loop."""

from .models import (
    HistoryMessage,
    ProgressEvent,
    ToolInvocation,
    TurnError,
    TurnResult,
    TurnState,
)
from .registry import MODEL_FACTORIES, ModelBackend, ModelRegistry, RegisteredBackend
from .runner import AgentRunner, build_history, collect_turn

__all__ = [
    "AgentRunner",
    "HistoryMessage",
    "MODEL_FACTORIES",
    "ModelBackend",
    "ModelRegistry",
    "ProgressEvent",
    "RegisteredBackend",
    "ToolInvocation",
    "TurnError",
    "TurnResult",
    "TurnState",
    "build_history",
    "collect_turn",
]
