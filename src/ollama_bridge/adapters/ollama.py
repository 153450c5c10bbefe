"""Ollama adapter for pure request/response transformations."""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from ollama_bridge.types import (
    ChatRequest,
    DoneMetrics,
    GenerateRequest,
    Message,
    ResponseChunk,
    Role,
    ToolCall,
    ToolDescriptor,
    ToolResult,
)

_METRIC_FIELDS = (
    "total_duration",
    "load_duration",
    "prompt_eval_count",
    "prompt_eval_duration",
    "eval_count",
    "eval_duration",
)


class OllamaRequestAdapter:
    """Adapter for converting between the typed model and Ollama JSON."""

    # --- outgoing ----------------------------------------------------------
    def to_provider(self, request: ChatRequest) -> dict[str, Any]:
        """Convert a ChatRequest to the ``/api/chat`` request body."""
        body: dict[str, Any] = {
            "model": request.model,
            "messages": [self.message_to_provider(m) for m in request.messages],
            "stream": request.stream,
        }
        if request.tools:
            body["tools"] = [self.tool_to_provider(t) for t in request.tools]
        return self._with_optional(
            body,
            options=request.options,
            format=request.format,
            keep_alive=request.keep_alive,
            think=request.think,
        )

    def generate_to_provider(self, request: GenerateRequest) -> dict[str, Any]:
        """Convert a GenerateRequest to the ``/api/generate`` request body."""
        body: dict[str, Any] = {
            "model": request.model,
            "prompt": request.prompt,
            "stream": request.stream,
        }
        if request.images:
            body["images"] = list(request.images)
        return self._with_optional(
            body,
            system=request.system,
            options=request.options,
            format=request.format,
            keep_alive=request.keep_alive,
            think=request.think,
            raw=request.raw,
            context=request.context,
        )

    def message_to_provider(self, msg: Message) -> dict[str, Any]:
        wire: dict[str, Any] = {"role": msg.role.value, "content": msg.content}
        if msg.thinking:
            wire["thinking"] = msg.thinking
        if msg.images:
            wire["images"] = list(msg.images)
        if msg.tool_calls:
            wire["tool_calls"] = [
                {"function": {"name": tc.name, "arguments": dict(tc.arguments)}}
                for tc in msg.tool_calls
            ]
        if msg.tool_name:
            wire["tool_name"] = msg.tool_name
        return wire

    def tool_to_provider(self, tool: ToolDescriptor) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for name, prop in tool.parameters.properties.items():
            spec: dict[str, Any] = {"type": prop.type}
            if prop.description:
                spec["description"] = prop.description
            if prop.enum:
                spec["enum"] = list(prop.enum)
            properties[name] = spec
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": {
                    "type": tool.parameters.type,
                    "properties": properties,
                    "required": list(tool.parameters.required),
                },
            },
        }

    def tool_result_message(self, result: ToolResult) -> Message:
        """Convert a ToolResult to the tool-role message appended to the conversation."""
        return Message(
            role=Role.TOOL,
            content=f"Tool: {result.tool_call}:\nResult: {result.content}",
            tool_name=result.tool_call.name,
        )

    # --- incoming ----------------------------------------------------------
    def chunk_from(self, raw: Mapping[str, Any]) -> ResponseChunk:
        """
        Convert one decoded NDJSON record to a ResponseChunk.

        Raises ``TypeError`` or ``ValueError`` when fields have the wrong shape.
        """
        done = _expect(raw.get("done", False), bool, "done")
        message = None
        if raw.get("message") is not None:
            message = self.message_from(_expect(raw["message"], dict, "message"))

        response = raw.get("response")
        if response is not None:
            response = _expect(response, str, "response")

        context = raw.get("context")
        if context is not None:
            context = tuple(int(t) for t in _expect(context, list, "context"))

        return ResponseChunk(
            model=str(raw.get("model") or ""),
            created_at=str(raw.get("created_at") or ""),
            done=done,
            message=message,
            response=response,
            done_reason=raw.get("done_reason"),
            metrics=self.metrics_from(raw) if done else None,
            context=context,
        )

    def message_from(self, raw: Mapping[str, Any]) -> Message:
        role = raw.get("role") or Role.ASSISTANT.value
        content = raw.get("content")
        thinking = raw.get("thinking")
        images = raw.get("images") or []
        tool_calls = [
            self.tool_call_from(_expect(tc, dict, "tool_calls[]"))
            for tc in _expect(raw.get("tool_calls") or [], list, "tool_calls")
        ]
        return Message(
            role=Role(str(role).lower()),
            content=_expect(content, str, "content") if content is not None else "",
            thinking=_expect(thinking, str, "thinking") if thinking is not None else None,
            tool_calls=tuple(tool_calls),
            images=tuple(_expect(images, list, "images")),
            tool_name=raw.get("tool_name"),
        )

    def tool_call_from(self, raw: Mapping[str, Any]) -> ToolCall:
        function = _expect(raw.get("function") or {}, dict, "function")
        raw_args = function.get("arguments")
        arguments: dict[str, Any] = {}

        if isinstance(raw_args, dict):
            arguments = dict(raw_args)
        elif isinstance(raw_args, str) and raw_args.strip():
            arguments = _expect(json.loads(raw_args), dict, "arguments")
        elif raw_args is not None and raw_args != "":
            raise TypeError(f"arguments must be an object, got {type(raw_args).__name__}")

        return ToolCall(name=str(function.get("name") or ""), arguments=arguments)

    def metrics_from(self, raw: Mapping[str, Any]) -> DoneMetrics:
        return DoneMetrics(
            **{f: int(_expect(raw.get(f) or 0, (int, float), f)) for f in _METRIC_FIELDS}
        )

    # --- helpers -----------------------------------------------------------
    @staticmethod
    def _with_optional(body: dict[str, Any], **fields: Optional[Any]) -> dict[str, Any]:
        for key, value in fields.items():
            if value is not None:
                body[key] = value
        return body


def _expect(value: Any, kind: type | tuple[type, ...], field_name: str) -> Any:
    if not isinstance(value, kind):
        names = " or ".join(k.__name__ for k in (kind if isinstance(kind, tuple) else (kind,)))
        raise TypeError(
            f"field '{field_name}' must be {names}, got {type(value).__name__}"
        )
    return value
