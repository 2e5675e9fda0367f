"""
Tool plumbing between the agent loop and the tool functions.

Every tool takes ``(deps, args)`` where ``args`` is a pydantic model, and
returns text. The tool return channel is always textual since it feeds back
into the model.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel
from pydantic_ai.tools import ToolDefinition

from .deps import AgentDeps

ToolFunc = Callable[[AgentDeps, Any], Union[str, Awaitable[str]]]


@dataclass(frozen=True)
class AgentTool:
    """A named, schema-validated capability the model may invoke."""

    name: str
    description: str
    args_model: type[BaseModel]
    func: ToolFunc

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters_json_schema=self.args_model.model_json_schema(),
        )

    def parse_args(self, raw: dict[str, Any]) -> BaseModel:
        """Validate raw call arguments; raises pydantic.ValidationError."""
        return self.args_model.model_validate(raw)

    async def call(self, deps: AgentDeps, args: BaseModel) -> str:
        """Run the tool, off the event loop when it is blocking."""
        if inspect.iscoroutinefunction(self.func):
            return await self.func(deps, args)
        return await asyncio.to_thread(self.func, deps, args)


class Toolset:
    """The tools bound to one turn's dependencies."""

    def __init__(self, deps: AgentDeps, tools: list[AgentTool]):
        self.deps = deps
        self._tools = {tool.name: tool for tool in tools}

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> AgentTool | None:
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition() for tool in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


# Prefixes of the textual errors tools return instead of raising
ERROR_PREFIXES = ("Error:", "Failed", "File too large")


def looks_like_error(observation: str) -> bool:
    return observation.startswith(ERROR_PREFIXES)
