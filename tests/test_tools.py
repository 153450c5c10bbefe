"""Tests for tool resolution, invocation and function-backed tools."""

import asyncio
import logging
from typing import Literal, Optional

import pytest

from ollama_bridge.cancellation import CancellationToken
from ollama_bridge.errors import Cancelled, ToolExecutionFault
from ollama_bridge.tools import (
    AsyncFunctionTool,
    DefaultToolInvoker,
    FunctionTool,
    ToolFaultPolicy,
    describe_function,
    find_tool,
    normalize_arguments,
    tool,
)
from ollama_bridge.types import Invokable, ToolCall


@tool
def get_weather(city: str, unit: Literal["celsius", "fahrenheit"] = "celsius") -> str:
    """Current weather for a city.

    Args:
        city: Name of the city.
        unit: Temperature unit.
    """
    return f"22 degrees {unit} in {city}"


@tool(name="slow_add")
async def add_later(a: int, b: int) -> int:
    """Add two numbers after a short pause."""
    await asyncio.sleep(0)
    return a + b


@tool
def explode() -> None:
    raise ValueError("boom")


class Echo(Invokable):
    def __init__(self):
        self.descriptor = describe_function(self.invoke, name="echo")
        self.received = None

    def invoke(self, arguments):
        self.received = dict(arguments)
        return arguments


class TestDescribeFunction:
    def test_schema_from_signature(self):
        descriptor = get_weather.descriptor

        assert descriptor.name == "get_weather"
        assert descriptor.description == "Current weather for a city."
        assert descriptor.parameters.required == ("city",)
        city = descriptor.parameters.properties["city"]
        assert city.type == "string"
        assert city.description == "Name of the city."
        unit = descriptor.parameters.properties["unit"]
        assert unit.enum == ("celsius", "fahrenheit")

    def test_json_types(self):
        def f(a: int, b: float, c: bool, d: list, e: dict, g: Optional[int] = None):
            pass

        props = describe_function(f).parameters.properties

        assert {k: p.type for k, p in props.items()} == {
            "a": "integer",
            "b": "number",
            "c": "boolean",
            "d": "array",
            "e": "object",
            "g": "integer",
        }

    def test_variadics_ignored(self):
        def f(x, *args, **kwargs):
            pass

        params = describe_function(f).parameters
        assert list(params.properties) == ["x"]
        assert params.properties["x"].type == "string"

    def test_decorator_picks_variant(self):
        assert isinstance(get_weather, FunctionTool)
        assert isinstance(add_later, AsyncFunctionTool)
        assert add_later.name == "slow_add"


class TestHelpers:
    def test_find_tool_case_insensitive(self):
        assert find_tool("GET_Weather", [add_later, get_weather]) is get_weather
        assert find_tool("get_weathe", [get_weather]) is None

    def test_normalize_arguments(self):
        normalized = normalize_arguments(
            {"s": "x", "n": 3, "f": 1.5, "b": True, "none": None, "obj": {"k": [1, 2]}, "arr": [1, "a"]}
        )

        assert normalized == {
            "s": "x",
            "n": 3,
            "f": 1.5,
            "b": True,
            "none": None,
            "obj": '{"k":[1,2]}',
            "arr": '[1,"a"]',
        }


class TestDefaultToolInvoker:
    @pytest.fixture
    def invoker(self):
        return DefaultToolInvoker()

    @pytest.mark.asyncio
    async def test_sync_tool(self, invoker):
        result = await invoker.invoke(ToolCall("get_weather", {"city": "Paris"}), [get_weather])

        assert result.tool is get_weather
        assert result.result == "22 degrees celsius in Paris"
        assert not result.is_error

    @pytest.mark.asyncio
    async def test_async_tool(self, invoker):
        result = await invoker.invoke(ToolCall("SLOW_ADD", {"a": 2, "b": 3}), [add_later])

        assert result.result == 5
        assert result.content == "5"

    @pytest.mark.asyncio
    async def test_structured_arguments_reach_tool_as_text(self, invoker):
        echo = Echo()

        await invoker.invoke(ToolCall("echo", {"filter": {"a": 1}, "n": 2}), [echo])

        assert echo.received == {"filter": '{"a":1}', "n": 2}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, invoker, caplog):
        with caplog.at_level(logging.WARNING):
            result = await invoker.invoke(ToolCall("lookup", {"q": "x"}), [get_weather])

        assert result.tool is None
        assert result.is_error
        assert result.error == 'Tool "lookup" does not exist'
        assert "lookup" in caplog.text

    @pytest.mark.asyncio
    async def test_fault_reported(self, invoker):
        result = await invoker.invoke(ToolCall("explode"), [explode])

        assert result.tool is explode
        assert result.error == "ValueError: boom"
        assert result.content == "Error: ValueError: boom"

    @pytest.mark.asyncio
    async def test_bad_arguments_reported(self, invoker):
        result = await invoker.invoke(ToolCall("get_weather", {"town": "Paris"}), [get_weather])

        assert result.is_error
        assert result.error.startswith("TypeError")

    @pytest.mark.asyncio
    async def test_fault_propagated(self):
        invoker = DefaultToolInvoker(ToolFaultPolicy.PROPAGATE)

        with pytest.raises(ToolExecutionFault) as info:
            await invoker.invoke(ToolCall("explode"), [explode])

        assert info.value.tool_name == "explode"
        assert isinstance(info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_unknown_tool_not_propagated(self):
        invoker = DefaultToolInvoker(ToolFaultPolicy.PROPAGATE)

        result = await invoker.invoke(ToolCall("lookup"), [explode])

        assert result.is_error

    @pytest.mark.asyncio
    async def test_cancelled_before_invocation(self, invoker):
        calls = []

        @tool
        def record() -> None:
            calls.append(1)

        token = CancellationToken()
        token.cancel()

        with pytest.raises(Cancelled):
            await invoker.invoke(ToolCall("record"), [record], token)
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_abandons_async_tool(self, invoker):
        started = asyncio.Event()
        abandoned = asyncio.Event()

        @tool
        async def hang() -> str:
            started.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                abandoned.set()
                raise
            return "unreachable"

        token = CancellationToken()

        async def cancel_when_started():
            await started.wait()
            token.cancel()

        canceller = asyncio.create_task(cancel_when_started())
        with pytest.raises(Cancelled):
            await invoker.invoke(ToolCall("hang"), [hang], token)
        await canceller

        assert abandoned.is_set()

    @pytest.mark.asyncio
    async def test_non_tool_rejected(self, invoker):
        class Impostor:
            name = "impostor"

        with pytest.raises(TypeError):
            await invoker.invoke(ToolCall("impostor"), [Impostor()])
