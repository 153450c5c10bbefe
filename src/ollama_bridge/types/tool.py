"""
Provider‑neutral types for client‑side tool use.

A tool is one of exactly two shapes: :class:`Invokable` (returns its value
immediately) or :class:`AsyncInvokable` (returns an awaitable). Both carry a
:class:`ToolDescriptor` that is sent to the model verbatim.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

__all__ = [
    "ToolCall",
    "ToolProperty",
    "ToolParameters",
    "ToolDescriptor",
    "Invokable",
    "AsyncInvokable",
    "Tool",
    "ToolResult",
]


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A request emitted by the model to call a local tool.

    Compared by value but not hashable, since ``arguments`` is a dict; the
    same holds for any Message carrying tool calls.
    """

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        args = ", ".join(f"{k}: {v}" for k, v in self.arguments.items())
        return f"{self.name or '(unnamed tool)'}({args})"


@dataclass(frozen=True, slots=True)
class ToolProperty:
    type: str
    description: str = ""
    enum: Optional[tuple[str, ...]] = None


@dataclass(frozen=True, slots=True)
class ToolParameters:
    properties: dict[str, ToolProperty] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    type: str = "object"


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Name, description and parameter schema offered to the model."""
    name: str
    description: str = ""
    parameters: ToolParameters = field(default_factory=ToolParameters)


class Invokable(ABC):
    """A tool that produces its result synchronously."""

    descriptor: ToolDescriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    def invoke(self, arguments: Mapping[str, Any]) -> Any: ...


class AsyncInvokable(ABC):
    """A tool that produces its result asynchronously."""

    descriptor: ToolDescriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    async def invoke_async(self, arguments: Mapping[str, Any]) -> Any: ...


Tool = Union[Invokable, AsyncInvokable]


@dataclass(slots=True)
class ToolResult:
    """Outcome of one tool call: the matched tool (if any) and its value or error text."""
    tool_call: ToolCall
    tool: Optional[Tool] = None
    result: Any = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def content(self) -> str:
        """Text handed back to the model for this call."""
        if self.is_error:
            return f"Error: {self.error}"
        if self.result is None:
            return ""
        if isinstance(self.result, (dict, list)):
            return json.dumps(self.result, ensure_ascii=False)
        return self.result if isinstance(self.result, str) else str(self.result)
