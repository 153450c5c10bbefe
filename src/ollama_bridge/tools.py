"""
Tool resolution and invocation.

The invoker matches a model-emitted :class:`ToolCall` against the registered
tools, normalizes its arguments and runs whichever invocation shape the tool
implements. Failures local to one call come back as an error
:class:`ToolResult` so the surrounding conversation can carry on.
"""
from __future__ import annotations

import inspect
import json
import logging
import re
import types
import typing
from enum import StrEnum
from typing import (
    Any,
    Awaitable,
    Callable,
    Literal,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
)

from ollama_bridge.cancellation import CancellationToken, guard
from ollama_bridge.errors import Cancelled, ToolExecutionFault, ToolResolutionFailure
from ollama_bridge.types import (
    AsyncInvokable,
    Invokable,
    Tool,
    ToolCall,
    ToolDescriptor,
    ToolParameters,
    ToolProperty,
    ToolResult,
)

__all__ = [
    "ToolFaultPolicy",
    "ToolInvoker",
    "DefaultToolInvoker",
    "FunctionTool",
    "AsyncFunctionTool",
    "tool",
    "describe_function",
    "find_tool",
    "normalize_arguments",
]


class ToolFaultPolicy(StrEnum):
    """What happens when a tool implementation raises."""

    REPORT = "report"  # turn the fault into error text for the model
    PROPAGATE = "propagate"  # raise ToolExecutionFault and fail the turn


class ToolInvoker(Protocol):
    """Protocol for running one tool call against a set of tools."""

    async def invoke(
        self,
        tool_call: ToolCall,
        tools: Sequence[Tool],
        cancel: Optional[CancellationToken] = None,
    ) -> ToolResult: ...


def find_tool(name: str, tools: Sequence[Tool]) -> Optional[Tool]:
    """Case-insensitive exact match on the function name."""
    wanted = (name or "").casefold()
    for candidate in tools:
        if candidate.name.casefold() == wanted:
            return candidate
    return None


def normalize_arguments(arguments: Mapping[str, Any]) -> dict[str, Any]:
    """
    Flatten structured JSON values to their JSON text.

    Scalars (str, int, float, bool, None) pass through unchanged; objects and
    arrays become compact JSON strings so tools never receive nested
    parsed-JSON containers they did not declare.
    """
    normalized: dict[str, Any] = {}
    for key, value in arguments.items():
        if isinstance(value, (dict, list)):
            normalized[key] = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        else:
            normalized[key] = value
    return normalized


class DefaultToolInvoker:
    """The default tool invoker that supports sync and async tools."""

    def __init__(
        self,
        policy: ToolFaultPolicy = ToolFaultPolicy.REPORT,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.policy = ToolFaultPolicy(policy)
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__

    async def invoke(
        self,
        tool_call: ToolCall,
        tools: Sequence[Tool],
        cancel: Optional[CancellationToken] = None,
    ) -> ToolResult:
        if cancel is not None:
            cancel.raise_if_cancelled()

        matched = find_tool(tool_call.name, tools)
        if matched is None:
            failure = ToolResolutionFailure(tool_call.name)
            self._log(str(failure), logging.WARNING)
            return ToolResult(tool_call=tool_call, error=str(failure))

        if not isinstance(matched, (Invokable, AsyncInvokable)):
            raise TypeError(
                f"Tool {matched.name!r} must be Invokable or AsyncInvokable, "
                f"got {type(matched).__name__}"
            )

        arguments = normalize_arguments(tool_call.arguments)
        self._log(f"Invoking tool {tool_call}", logging.DEBUG)
        try:
            if isinstance(matched, AsyncInvokable):
                result = await guard(matched.invoke_async(arguments), cancel)
            else:
                result = matched.invoke(arguments)
        except Cancelled:
            raise
        except Exception as exc:
            if self.policy is ToolFaultPolicy.PROPAGATE:
                raise ToolExecutionFault(matched.name, exc) from exc
            self.logger.warning(
                "[%s] Tool %s raised; reporting it to the model",
                self.name,
                matched.name,
                exc_info=exc,
            )
            return ToolResult(
                tool_call=tool_call,
                tool=matched,
                error=f"{type(exc).__name__}: {exc}",
            )

        return ToolResult(tool_call=tool_call, tool=matched, result=result)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")


# --- function-backed tools ---------------------------------------------------

_JSON_TYPES: dict[type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
}

_ARGS_HEADER = re.compile(r"^\s*(Args|Arguments|Parameters):\s*$")
_SECTION_HEADER = re.compile(r"^\S[^:]*:\s*$")
_ARG_LINE = re.compile(r"^\s*(\w+)\s*(\([^)]*\))?:\s*(.*)$")


def _json_type(annotation: Any) -> tuple[str, Optional[tuple[str, ...]]]:
    """Map a Python annotation to a JSON schema type and optional enum."""
    origin = typing.get_origin(annotation)
    if origin is Literal:
        return "string", tuple(str(v) for v in typing.get_args(annotation))
    if origin is Union or origin is types.UnionType:
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(members) == 1:
            return _json_type(members[0])
        return "string", None
    if origin is not None:
        annotation = origin
    return _JSON_TYPES.get(annotation, "string"), None


def _split_docstring(doc: str) -> tuple[str, dict[str, str]]:
    """Return the summary paragraph and the per-argument descriptions."""
    summary: list[str] = []
    arg_docs: dict[str, str] = {}
    in_args = False
    summary_done = False
    current: Optional[str] = None
    for line in doc.splitlines():
        if _ARGS_HEADER.match(line):
            in_args = True
            continue
        if _SECTION_HEADER.match(line):
            in_args = False
            summary_done = True
            continue
        if in_args:
            if not line.strip():
                current = None
                continue
            match = _ARG_LINE.match(line)
            if match:
                current = match.group(1)
                arg_docs[current] = match.group(3).strip()
            elif current:
                arg_docs[current] = f"{arg_docs[current]} {line.strip()}"
        elif not summary_done:
            if line.strip():
                summary.append(line.strip())
            elif summary:
                summary_done = True
    return " ".join(summary), arg_docs


def describe_function(
    func: Callable[..., Any],
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> ToolDescriptor:
    """
    Build a ToolDescriptor from a function's signature and docstring.

    Parameters without a default are required. Google-style ``Args:`` entries
    become property descriptions; ``Literal`` annotations become enums.
    """
    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError):
        hints = {}
    summary, arg_docs = _split_docstring(inspect.getdoc(func) or "")

    properties: dict[str, ToolProperty] = {}
    required: list[str] = []
    for param in inspect.signature(func).parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        json_type, enum = _json_type(hints.get(param.name, str))
        properties[param.name] = ToolProperty(
            type=json_type, description=arg_docs.get(param.name, ""), enum=enum
        )
        if param.default is param.empty:
            required.append(param.name)

    return ToolDescriptor(
        name=name or func.__name__,
        description=description if description is not None else summary,
        parameters=ToolParameters(properties=properties, required=tuple(required)),
    )


class FunctionTool(Invokable):
    """Invokable backed by a plain function called with keyword arguments."""

    def __init__(
        self, func: Callable[..., Any], descriptor: Optional[ToolDescriptor] = None
    ) -> None:
        self.func = func
        self.descriptor = descriptor or describe_function(func)

    def invoke(self, arguments: Mapping[str, Any]) -> Any:
        return self.func(**arguments)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class AsyncFunctionTool(AsyncInvokable):
    """AsyncInvokable backed by a coroutine function called with keyword arguments."""

    def __init__(
        self,
        func: Callable[..., Awaitable[Any]],
        descriptor: Optional[ToolDescriptor] = None,
    ) -> None:
        self.func = func
        self.descriptor = descriptor or describe_function(func)

    async def invoke_async(self, arguments: Mapping[str, Any]) -> Any:
        return await self.func(**arguments)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


def tool(
    func: Optional[Callable[..., Any]] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Any:
    """
    Decorator turning a function into a tool.

    Coroutine functions become :class:`AsyncFunctionTool`, everything else
    :class:`FunctionTool`. Usable bare (``@tool``) or with arguments
    (``@tool(name="lookup")``).
    """

    def wrap(f: Callable[..., Any]) -> Tool:
        descriptor = describe_function(f, name=name, description=description)
        if inspect.iscoroutinefunction(f):
            return AsyncFunctionTool(f, descriptor)
        return FunctionTool(f, descriptor)

    if func is not None:
        return wrap(func)
    return wrap
