"""
Multi-turn tool-calling conversation loop.

One turn sends the conversation, streams and folds the reply into a single
assistant message, appends it, and, when the model asked for tools, runs
them and appends their results before sending again. The loop ends when the
model answers without tool calls, when the caller cancels, or when a turn
fails.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Optional, Sequence

from ollama_bridge.adapters import OllamaRequestAdapter
from ollama_bridge.aggregation import MessageAggregator
from ollama_bridge.cancellation import CancellationToken
from ollama_bridge.client import OllamaClient
from ollama_bridge.errors import Cancelled, OllamaBridgeError, TurnLimitExceeded
from ollama_bridge.params import apply_params
from ollama_bridge.stream_utils import stream_to_end
from ollama_bridge.tools import DefaultToolInvoker, ToolInvoker
from ollama_bridge.types import (
    ChatRequest,
    DoneMetrics,
    Message,
    ResponseChunk,
    Role,
    Tool,
    ToolCall,
    ToolResult,
)

__all__ = ["ConversationStatus", "ConversationResult", "ConversationLoop", "Chat"]


class ConversationStatus(StrEnum):
    ANSWERED = "answered"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(slots=True)
class ConversationResult:
    """Outcome of :meth:`ConversationLoop.run`."""

    status: ConversationStatus
    messages: list[Message] = field(default_factory=list)
    turns: int = 0
    message: Optional[Message] = None
    metrics: Optional[DoneMetrics] = None
    error: Optional[OllamaBridgeError] = None

    @property
    def is_error(self) -> bool:
        return self.status is not ConversationStatus.ANSWERED

    @property
    def content(self) -> str:
        return self.message.content if self.message is not None else ""

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class ConversationLoop:
    """
    Drives send → stream → aggregate → tool-check → invoke until the model answers.

    The caller owns the message list passed to :meth:`run`; the loop only
    appends to it. Tool messages of one turn are appended together, in call
    order, after every call of that turn has finished.
    """

    def __init__(
        self,
        client: OllamaClient,
        model: str = "",
        tools: Sequence[Tool] = (),
        invoker: Optional[ToolInvoker] = None,
        max_turns: Optional[int] = None,
        options: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        think: Optional[bool] = None,
        format: Optional[str | dict[str, Any]] = None,
        keep_alive: Optional[str] = None,
        on_token: Optional[Callable[[str], None]] = None,
        on_think: Optional[Callable[[str], None]] = None,
        on_tool_call: Optional[Callable[[ToolCall], None]] = None,
        on_tool_result: Optional[Callable[[ToolResult], None]] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        if max_turns is not None and max_turns < 1:
            raise ValueError(f"max_turns must be at least 1, got {max_turns}")

        self.client = client
        self.model = model
        self.tools = list(tools)
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self.invoker = invoker or DefaultToolInvoker(logger=self.logger)
        self.max_turns = max_turns
        self.options = options
        self.params = params
        self.think = think
        self.format = format
        self.keep_alive = keep_alive
        self.on_token = on_token
        self.on_think = on_think
        self.on_tool_call = on_tool_call
        self.on_tool_result = on_tool_result
        self._adapter = OllamaRequestAdapter()

    async def run(
        self,
        messages: list[Message],
        cancel: Optional[CancellationToken] = None,
    ) -> ConversationResult:
        """
        Run the conversation until the model answers without tool calls.

        Failures and cancellation are reported through the returned
        :class:`ConversationResult`; native ``asyncio`` task cancellation
        propagates.
        """
        turns = 0
        metrics: Optional[DoneMetrics] = None
        try:
            while True:
                if self.max_turns is not None and turns >= self.max_turns:
                    raise TurnLimitExceeded(self.max_turns)
                if cancel is not None:
                    cancel.raise_if_cancelled()

                turns += 1
                final = await self._send(messages, cancel)
                metrics = final.metrics
                reply = final.message or Message(Role.ASSISTANT)
                messages.append(reply)

                if not reply.has_tool_calls:
                    self._log(f"Answered after {turns} turn(s)", logging.DEBUG)
                    return ConversationResult(
                        status=ConversationStatus.ANSWERED,
                        messages=messages,
                        turns=turns,
                        message=reply,
                        metrics=metrics,
                    )

                messages.extend(await self._invoke_tools(reply.tool_calls, cancel))
        except Cancelled as exc:
            self._log(f"Cancelled during turn {turns}")
            return ConversationResult(
                status=ConversationStatus.CANCELLED,
                messages=messages,
                turns=turns,
                metrics=metrics,
                error=exc,
            )
        except OllamaBridgeError as exc:
            self._log(f"Turn {turns} failed: {exc}", logging.WARNING)
            return ConversationResult(
                status=ConversationStatus.FAILED,
                messages=messages,
                turns=turns,
                metrics=metrics,
                error=exc,
            )

    def build_request(self, messages: Sequence[Message]) -> ChatRequest:
        request = ChatRequest(
            model=self.model,
            messages=list(messages),
            tools=[t.descriptor for t in self.tools],
            options=dict(self.options) if self.options else None,
            format=self.format,
            keep_alive=self.keep_alive,
            think=self.think,
        )
        if self.params:
            request = apply_params(request, self.params)
        return request

    async def _send(
        self, messages: Sequence[Message], cancel: Optional[CancellationToken]
    ) -> ResponseChunk:
        stream = self.client.chat_stream(self.build_request(messages), cancel)
        async with aclosing(stream):
            return await stream_to_end(stream, MessageAggregator(), self._on_chunk)

    async def _invoke_tools(
        self, tool_calls: Sequence[ToolCall], cancel: Optional[CancellationToken]
    ) -> list[Message]:
        replies: list[Message] = []
        for call in tool_calls:
            if self.on_tool_call is not None:
                self.on_tool_call(call)
            result = await self.invoker.invoke(call, self.tools, cancel)
            if self.on_tool_result is not None:
                self.on_tool_result(result)
            replies.append(self._adapter.tool_result_message(result))
        return replies

    def _on_chunk(self, chunk: ResponseChunk) -> None:
        delta = chunk.message
        if delta is None:
            return
        if delta.content and self.on_token is not None:
            self.on_token(delta.content)
        if delta.thinking and self.on_think is not None:
            self.on_think(delta.thinking)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")


class Chat:
    """
    Stateful chat session: keeps the message history and runs a
    :class:`ConversationLoop` for every message sent.

    When a send ends before its tool calls were answered (cancelled or
    failed during the tool phase), the unanswered assistant tool-call
    message is dropped from the history so the next send starts from a
    consistent conversation.

    Example
    -------
    >>> chat = Chat(client, "llama3.2", system="Answer briefly.", tools=[get_weather])
    >>> result = await chat.send("What's the weather in Paris?")
    >>> print(result.content)
    """

    def __init__(
        self,
        client: OllamaClient,
        model: str = "",
        *,
        system: Optional[str] = None,
        tools: Sequence[Tool] = (),
        **loop_options: Any,
    ) -> None:
        self.messages: list[Message] = []
        if system:
            self.messages.append(Message.system(system))
        self.loop = ConversationLoop(client, model, tools=tools, **loop_options)

    @property
    def model(self) -> str:
        return self.loop.model

    @model.setter
    def model(self, value: str) -> None:
        self.loop.model = value

    async def send(
        self,
        text: str,
        images: Optional[Sequence[str]] = None,
        role: Role = Role.USER,
        cancel: Optional[CancellationToken] = None,
    ) -> ConversationResult:
        self.messages.append(Message(Role(role), text, images=tuple(images or ())))
        result = await self.loop.run(self.messages, cancel)
        if result.is_error and self.messages and self.messages[-1].has_tool_calls:
            self.messages.pop()
        return result
