"""Tests for the Ollama request adapter."""

import pytest

from ollama_bridge.adapters import OllamaRequestAdapter
from ollama_bridge.types import (
    ChatRequest,
    GenerateRequest,
    Message,
    Role,
    ToolCall,
    ToolDescriptor,
    ToolParameters,
    ToolProperty,
    ToolResult,
)


@pytest.fixture
def adapter():
    return OllamaRequestAdapter()


@pytest.fixture
def weather_tool():
    return ToolDescriptor(
        name="get_weather",
        description="Current weather for a city",
        parameters=ToolParameters(
            properties={
                "city": ToolProperty(type="string", description="City name"),
                "unit": ToolProperty(type="string", enum=("celsius", "fahrenheit")),
            },
            required=("city",),
        ),
    )


class TestOutgoing:
    def test_chat_body_basic(self, adapter):
        request = ChatRequest(
            model="llama3.2",
            messages=[Message.system("You are helpful"), Message.user("Hello")],
        )

        body = adapter.to_provider(request)

        assert body == {
            "model": "llama3.2",
            "messages": [
                {"role": "system", "content": "You are helpful"},
                {"role": "user", "content": "Hello"},
            ],
            "stream": True,
        }

    def test_optional_fields_only_when_set(self, adapter):
        request = ChatRequest(
            model="llama3.2",
            options={"temperature": 0.2},
            format="json",
            keep_alive="5m",
            think=False,
        )

        body = adapter.to_provider(request)

        assert body["options"] == {"temperature": 0.2}
        assert body["format"] == "json"
        assert body["keep_alive"] == "5m"
        assert body["think"] is False
        assert "tools" not in body

    def test_tools_serialized(self, adapter, weather_tool):
        body = adapter.to_provider(ChatRequest(model="m", tools=[weather_tool]))

        assert body["tools"] == [
            {
                "type": "function",
                "function": {
                    "name": "get_weather",
                    "description": "Current weather for a city",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "city": {"type": "string", "description": "City name"},
                            "unit": {"type": "string", "enum": ["celsius", "fahrenheit"]},
                        },
                        "required": ["city"],
                    },
                },
            }
        ]

    def test_tool_call_history_roundtrip(self, adapter):
        """Assistant tool calls and tool replies keep their wire fields."""
        assistant = Message(
            Role.ASSISTANT, tool_calls=(ToolCall("calc", {"a": 2, "b": 2}),)
        )
        reply = Message(Role.TOOL, "4", tool_name="calc")

        wire = [adapter.message_to_provider(m) for m in (assistant, reply)]

        assert wire[0]["tool_calls"] == [
            {"function": {"name": "calc", "arguments": {"a": 2, "b": 2}}}
        ]
        assert wire[1] == {"role": "tool", "content": "4", "tool_name": "calc"}

    def test_generate_body(self, adapter):
        request = GenerateRequest(
            model="llama3.2", prompt="Why is the sky blue?", system="Be brief", raw=True
        )

        body = adapter.generate_to_provider(request)

        assert body == {
            "model": "llama3.2",
            "prompt": "Why is the sky blue?",
            "stream": True,
            "system": "Be brief",
            "raw": True,
        }

    def test_tool_result_message(self, adapter):
        result = ToolResult(ToolCall("get_weather", {"city": "Paris"}), result="sunny")

        message = adapter.tool_result_message(result)

        assert message.role is Role.TOOL
        assert message.content == "Tool: get_weather(city: Paris):\nResult: sunny"
        assert message.tool_name == "get_weather"

    def test_tool_error_message(self, adapter):
        result = ToolResult(ToolCall("lookup"), error='Tool "lookup" does not exist')

        message = adapter.tool_result_message(result)

        assert message.content == 'Tool: lookup():\nResult: Error: Tool "lookup" does not exist'


class TestIncoming:
    def test_chat_delta(self, adapter):
        chunk = adapter.chunk_from(
            {
                "model": "llama3.2",
                "created_at": "2024-07-01T12:00:00.123456Z",
                "message": {"role": "assistant", "content": "Hel"},
                "done": False,
            }
        )

        assert chunk.done is False
        assert chunk.text == "Hel"
        assert chunk.message.role is Role.ASSISTANT
        assert chunk.metrics is None
        assert chunk.created is not None

    def test_done_chunk_metrics(self, adapter):
        chunk = adapter.chunk_from(
            {
                "model": "llama3.2",
                "done": True,
                "done_reason": "stop",
                "total_duration": 5000,
                "eval_count": 10,
                "eval_duration": 2_000_000_000,
            }
        )

        assert chunk.metrics.total_duration == 5000
        assert chunk.metrics.load_duration == 0
        assert chunk.metrics.tokens_per_second == 5.0
        assert chunk.done_reason == "stop"

    def test_done_chunk_without_metrics_is_zero_filled(self, adapter):
        chunk = adapter.chunk_from({"done": True})

        assert chunk.metrics is not None
        assert chunk.metrics.eval_count == 0
        assert chunk.metrics.tokens_per_second == 0.0

    def test_unparseable_timestamp(self, adapter):
        chunk = adapter.chunk_from({"created_at": "yesterday", "response": "x"})
        assert chunk.created is None

    def test_tool_call_arguments(self, adapter):
        chunk = adapter.chunk_from(
            {
                "message": {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [
                        {"function": {"name": "a", "arguments": {"x": 1}}},
                        {"function": {"name": "b", "arguments": '{"y": "2"}'}},
                        {"function": {"name": "c"}},
                    ],
                },
                "done": False,
            }
        )

        calls = chunk.message.tool_calls
        assert [c.name for c in calls] == ["a", "b", "c"]
        assert calls[0].arguments == {"x": 1}
        assert calls[1].arguments == {"y": "2"}
        assert calls[2].arguments == {}

    def test_tool_call_arguments_are_copied(self, adapter):
        raw_args = {"city": "Paris"}

        call = adapter.tool_call_from({"function": {"name": "get_weather", "arguments": raw_args}})
        raw_args["city"] = "Rome"

        assert call.arguments == {"city": "Paris"}

    def test_tool_calls_compare_by_value_but_are_unhashable(self, adapter):
        call = adapter.tool_call_from({"function": {"name": "a", "arguments": {"x": 1}}})

        assert call == ToolCall("a", {"x": 1})
        with pytest.raises(TypeError):
            hash(Message(Role.ASSISTANT, tool_calls=(call,)))

    def test_role_is_case_insensitive(self, adapter):
        message = adapter.message_from({"role": "Assistant", "content": "hi"})
        assert message.role is Role.ASSISTANT

    @pytest.mark.parametrize(
        "raw",
        [
            {"message": "hello"},
            {"message": {"role": "assistant", "content": 5}},
            {"message": {"role": "robot", "content": "hi"}},
            {"response": ["a"]},
            {"message": {"tool_calls": [{"function": {"name": "a", "arguments": 3}}]}},
            {"response": "half", "done": "false"},
            {"done": 1},
            {"done": True, "eval_count": "12"},
            {"done": True, "total_duration": [5]},
        ],
    )
    def test_wrong_shapes_rejected(self, adapter, raw):
        with pytest.raises((TypeError, ValueError)):
            adapter.chunk_from(raw)
