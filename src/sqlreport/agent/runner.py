"""
Agent loop: one user turn as an explicit, bounded state machine.

    IDLE -> REASONING -> {TOOL_CALL -> OBSERVING -> REASONING}* -> FINALIZING -> DONE
                                                       (any state) -> ERRORED

Each REASONING step is a single request to the selected pydantic-ai model
with the turn's tool definitions. Requested tool calls run one at a time, in
order, and every outcome (including errors and timeouts) is fed back to the
model as an observation. Only the iteration cap, a backend failure, the turn
deadline or cancellation end the loop in ERRORED.

``AgentRunner.run_turn`` is an async generator: it yields ProgressEvents in
emission order and always finishes with exactly one TurnResult.
"""

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Union

import logfire
from pydantic import ValidationError
from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    RetryPromptPart,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import ModelRequestParameters
from pydantic_ai.settings import ModelSettings

from ..config import Settings
from ..database import ConnectionConfig, Database, resolve
from ..errors import (
    BackendFailure,
    ConfigurationError,
    ErrorKind,
    LoopBoundExceeded,
    SqlReportError,
    TurnCancelled,
    TurnTimeout,
)
from ..storage import S3Uploader
from ..tools import AgentDeps, Toolset, build_toolset, datasource_label
from ..tools.base import looks_like_error
from .models import (
    HistoryMessage,
    ProgressEvent,
    ToolInvocation,
    TurnError,
    TurnResult,
    TurnState,
)
from .prompts import build_system_prompt
from .registry import ModelRegistry, RegisteredBackend

logger = logging.getLogger(__name__)

TurnItem = Union[ProgressEvent, TurnResult]

TOOL_MESSAGES = {
    "list_tables": "Listing available tables",
    "describe_schema": "Inspecting database schema",
    "validate_query": "Validating SQL query",
    "execute_query": "Executing SQL query",
    "excel_export": "Exporting results to Excel",
}

# Percentage bands: setup 0-10, reasoning 10-90, finalizing 95, done 100
_LOOP_START = 10
_LOOP_SPAN = 80
_FINALIZING = 95


@dataclass
class _Turn:
    """Mutable state of one turn. Owned by a single run_turn call."""

    thread_id: str
    deadline: float
    max_iterations: int
    state: TurnState = TurnState.IDLE
    percentage: int = 0
    iteration: int = 0
    backend: RegisteredBackend | None = None
    database: Database | None = None
    toolset: Toolset | None = None
    messages: list[ModelMessage] = field(default_factory=list)
    invocations: list[ToolInvocation] = field(default_factory=list)
    cancel_event: asyncio.Event | None = None

    def progress(self, step: str, message: str, percentage: int, terminal: bool = False) -> ProgressEvent:
        # Percentages never go backwards within a turn
        self.percentage = max(self.percentage, min(100, percentage))
        return ProgressEvent(step=step, message=message, percentage=self.percentage, terminal=terminal)

    def remaining(self) -> float:
        return self.deadline - time.monotonic()

    def check_deadline(self) -> float:
        remaining = self.remaining()
        if remaining <= 0:
            raise TurnTimeout("Turn exceeded its time limit")
        return remaining

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise TurnCancelled("Turn cancelled by caller")

    def loop_percentage(self) -> int:
        done = (self.iteration - 1) / max(1, self.max_iterations)
        return _LOOP_START + int(_LOOP_SPAN * done)


def build_history(
    system_prompt: str,
    history: list[HistoryMessage],
    user_message: str,
) -> list[ModelMessage]:
    """Prior thread messages plus the new user message as pydantic-ai messages."""
    messages: list[ModelMessage] = []
    pending: list[Any] = [SystemPromptPart(content=system_prompt)]
    for item in history:
        if item.role == "user":
            pending.append(UserPromptPart(content=item.content))
            continue
        if pending:
            messages.append(ModelRequest(parts=pending))
            pending = []
        messages.append(ModelResponse(parts=[TextPart(content=item.content)]))
    pending.append(UserPromptPart(content=user_message))
    messages.append(ModelRequest(parts=pending))
    return messages


def response_text(response: ModelResponse) -> str:
    return "".join(part.content for part in response.parts if isinstance(part, TextPart)).strip()


class AgentRunner:
    """Runs turns against a registry of backends and per-turn connections."""

    def __init__(
        self,
        registry: ModelRegistry,
        settings: Settings,
        uploader: S3Uploader | None = None,
    ):
        self.registry = registry
        self.settings = settings
        self.uploader = uploader

    async def run_turn(
        self,
        thread_id: str,
        connection: ConnectionConfig | dict[str, Any],
        provider_id: str | None,
        user_message: str,
        history: list[HistoryMessage | dict[str, str]] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[TurnItem]:
        """Run one turn, yielding progress events and finally a TurnResult."""
        turn = _Turn(
            thread_id=thread_id,
            deadline=time.monotonic() + self.settings.turn_timeout,
            max_iterations=max(1, self.settings.max_iterations),
            cancel_event=cancel_event,
        )
        yield turn.progress("start", "Starting analysis", 0)

        try:
            async with aclosing(self._drive(turn, connection, provider_id, user_message, history or [])) as steps:
                async for item in steps:
                    yield item
        except SqlReportError as e:
            yield self._fail(turn, e.kind, str(e))
            yield self._result(turn, error=TurnError(kind=e.kind, message=str(e)))
        except Exception as e:
            logger.exception("Turn %s failed unexpectedly", thread_id)
            yield self._fail(turn, ErrorKind.INTERNAL, str(e))
            yield self._result(turn, error=TurnError(kind=ErrorKind.INTERNAL, message=str(e)))
        finally:
            if turn.database is not None:
                turn.database.dispose()

    async def _drive(
        self,
        turn: _Turn,
        connection: ConnectionConfig | dict[str, Any],
        provider_id: str | None,
        user_message: str,
        history: list[HistoryMessage | dict[str, str]],
    ) -> AsyncIterator[TurnItem]:
        # Configuration and connectivity errors abort before any reasoning
        config = self._connection_config(connection)
        turn.backend = self.registry.get(provider_id)
        history_messages = [HistoryMessage.model_validate(item) for item in history]

        yield turn.progress("connecting", f"Connecting to {config.describe()}", 5)
        turn.check_cancelled()
        try:
            turn.database = await asyncio.wait_for(
                resolve(
                    config,
                    probe_timeout=self.settings.probe_timeout,
                    strict=self.settings.require_table_list,
                ),
                timeout=turn.check_deadline(),
            )
        except asyncio.TimeoutError as e:
            raise TurnTimeout("Turn exceeded its time limit while connecting") from e

        deps = AgentDeps(
            database=turn.database,
            dialect=config.dialect,
            datasource=datasource_label(config.database, self.settings.default_datasource),
            max_return_values=self.settings.max_return_values,
            uploader=self.uploader,
            export_max_bytes=self.settings.export_max_bytes,
        )
        turn.toolset = build_toolset(deps)
        table_names = turn.database.table_names
        yield turn.progress(
            "connected",
            f"Connected to {turn.database.database_name} ({len(table_names)} tables)",
            _LOOP_START,
        )

        system_prompt = build_system_prompt(config.dialect, turn.database.database_name, table_names)
        turn.messages = build_history(system_prompt, history_messages, user_message)
        params = ModelRequestParameters(function_tools=turn.toolset.definitions(), allow_text_output=True)

        while turn.iteration < turn.max_iterations:
            turn.check_cancelled()
            turn.iteration += 1
            turn.state = TurnState.REASONING
            yield turn.progress(
                "reasoning",
                "Analyzing your question" if turn.iteration == 1 else "Reviewing results",
                turn.loop_percentage(),
            )

            response = await self._request(turn, params)
            turn.messages.append(response)
            calls = [part for part in response.parts if isinstance(part, ToolCallPart)]

            if not calls:
                turn.state = TurnState.FINALIZING
                yield turn.progress("finalizing", "Preparing answer", _FINALIZING)
                answer = response_text(response)
                if not answer:
                    raise BackendFailure("Model returned an empty response")
                turn.state = TurnState.DONE
                yield turn.progress("done", "Analysis complete", 100, terminal=True)
                yield self._result(turn, answer=answer)
                return

            observations = []
            for call in calls:
                turn.check_cancelled()
                turn.state = TurnState.TOOL_CALL
                yield turn.progress(
                    "tool_start",
                    TOOL_MESSAGES.get(call.tool_name, f"Running {call.tool_name}"),
                    turn.loop_percentage(),
                )
                observation, invocation = await self._call_tool(turn, call)
                observations.append(observation)
                turn.invocations.append(invocation)
                turn.state = TurnState.OBSERVING
                status = "failed" if invocation.error else "completed"
                yield turn.progress(
                    "tool_complete",
                    f"{call.tool_name} {status} in {invocation.duration_ms}ms",
                    turn.loop_percentage(),
                )
            turn.messages.append(ModelRequest(parts=observations))

        raise LoopBoundExceeded(
            f"Stopped after {turn.max_iterations} reasoning steps without a final answer"
        )

    def _connection_config(self, connection: ConnectionConfig | dict[str, Any]) -> ConnectionConfig:
        if connection is None:
            raise ConfigurationError(
                "Database connection configuration is required. "
                "Please provide valid connection details."
            )
        if isinstance(connection, ConnectionConfig):
            config = connection
        else:
            try:
                config = ConnectionConfig.model_validate(connection)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid connection configuration: {e}") from e
        config.require_complete()
        return config

    async def _request(self, turn: _Turn, params: ModelRequestParameters) -> ModelResponse:
        remaining = turn.check_deadline()
        try:
            return await asyncio.wait_for(
                model_request(
                    turn.backend.model,
                    turn.messages,
                    model_settings=ModelSettings(temperature=0.0),
                    model_request_parameters=params,
                ),
                timeout=remaining,
            )
        except asyncio.TimeoutError as e:
            raise TurnTimeout("Turn exceeded its time limit waiting for the model") from e
        except SqlReportError:
            raise
        except Exception as e:
            logger.error("Backend %s failed: %s", turn.backend.id, e)
            raise BackendFailure(f"{turn.backend.backend.name} request failed: {e}") from e

    async def _call_tool(
        self, turn: _Turn, call: ToolCallPart
    ) -> tuple[ToolReturnPart | RetryPromptPart, ToolInvocation]:
        started = time.perf_counter()
        invocation = ToolInvocation(tool_name=call.tool_name)

        def retry(message: str) -> tuple[RetryPromptPart, ToolInvocation]:
            invocation.error = message
            invocation.duration_ms = int((time.perf_counter() - started) * 1000)
            part = RetryPromptPart(content=message, tool_name=call.tool_name, tool_call_id=call.tool_call_id)
            return part, invocation

        tool = turn.toolset.get(call.tool_name)
        if tool is None:
            return retry(
                f"Unknown tool '{call.tool_name}'. Available tools: {', '.join(turn.toolset.names)}"
            )
        try:
            raw_args = call.args_as_dict()
        except ValueError as e:
            return retry(f"Arguments for {call.tool_name} must be a JSON object: {e}")
        invocation.arguments = raw_args
        try:
            args = tool.parse_args(raw_args)
        except ValidationError as e:
            return retry(f"Invalid arguments for {call.tool_name}: {e}")

        def abort(message: str) -> TurnTimeout:
            # The call that hit the deadline still belongs in the audit trail
            invocation.error = message
            invocation.duration_ms = int((time.perf_counter() - started) * 1000)
            turn.invocations.append(invocation)
            return TurnTimeout(message)

        remaining = turn.remaining()
        if remaining <= 0:
            raise abort(f"Turn exceeded its time limit before {call.tool_name}")
        timeout = min(self.settings.tool_timeout, remaining)
        try:
            with logfire.span("tool {tool_name}", tool_name=call.tool_name, thread_id=turn.thread_id):
                content = await asyncio.wait_for(tool.call(turn.toolset.deps, args), timeout=timeout)
        except asyncio.TimeoutError as e:
            if timeout >= remaining:
                raise abort(f"Turn exceeded its time limit during {call.tool_name}") from e
            content = f"Error: {call.tool_name} timed out after {timeout:g}s"
            invocation.error = content
        except SqlReportError as e:
            content = f"Error: {e}"
            invocation.error = content
        except Exception as e:
            logger.exception("Tool %s raised", call.tool_name)
            content = f"Error: {call.tool_name} failed: {e}"
            invocation.error = content
        else:
            if looks_like_error(content):
                invocation.error = content
            else:
                invocation.result = content

        invocation.duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Thread %s: tool %s %s in %dms",
            turn.thread_id,
            call.tool_name,
            "failed" if invocation.error else "completed",
            invocation.duration_ms,
        )
        part = ToolReturnPart(tool_name=call.tool_name, content=content, tool_call_id=call.tool_call_id)
        return part, invocation

    def _fail(self, turn: _Turn, kind: ErrorKind, message: str) -> ProgressEvent:
        turn.state = TurnState.ERRORED
        logger.warning("Thread %s ended with %s: %s", turn.thread_id, kind.value, message)
        return turn.progress("error", message, 100, terminal=True)

    def _result(self, turn: _Turn, answer: str | None = None, error: TurnError | None = None) -> TurnResult:
        deps = turn.toolset.deps if turn.toolset is not None else None
        return TurnResult(
            thread_id=turn.thread_id,
            answer_text=answer,
            tool_invocations=list(turn.invocations),
            exports=list(deps.exports) if deps is not None else [],
            error=error,
            provider=turn.backend.id if turn.backend is not None else None,
        )


async def collect_turn(items: AsyncIterator[TurnItem]) -> tuple[list[ProgressEvent], TurnResult]:
    """Drain a run_turn stream into its events and final result."""
    events: list[ProgressEvent] = []
    result: TurnResult | None = None
    async for item in items:
        if isinstance(item, TurnResult):
            result = item
        else:
            events.append(item)
    if result is None:
        raise RuntimeError("Turn stream ended without a result")
    return events, result
