"""
Folds that turn a streamed sequence of chunks into one terminal value.

Every aggregator exposes ``append`` (pure accumulation, no I/O) and
``complete`` (returns the terminal value). Chunk aggregators refuse to
complete unless a chunk flagged ``done`` was appended: a stream without one
was truncated, which is not the same thing as an empty answer.
"""

from __future__ import annotations

import dataclasses
from typing import Optional, Protocol, TypeVar

from ollama_bridge.errors import IncompleteStream
from ollama_bridge.types import Message, ResponseChunk, Role, ToolCall

__all__ = [
    "Aggregator",
    "MessageMerger",
    "TextAggregator",
    "MessageAggregator",
    "StringAggregator",
]

TIn = TypeVar("TIn", contravariant=True)
TOut = TypeVar("TOut", covariant=True)


class Aggregator(Protocol[TIn, TOut]):
    """Stateful fold over a stream."""

    def append(self, item: TIn) -> None: ...

    def complete(self) -> TOut: ...


class MessageMerger:
    """Accumulates message deltas of one turn into one Message.

    Content and thinking are concatenated, tool calls and images are appended
    whole. Nothing is exposed as a :class:`Message` before :meth:`to_message`.
    """

    def __init__(self) -> None:
        self._content: list[str] = []
        self._thinking: list[str] = []
        self._tool_calls: list[ToolCall] = []
        self._images: list[str] = []
        self._role: Optional[Role] = None

    def append(self, delta: Optional[Message]) -> None:
        if delta is None:
            return
        if delta.role:
            self._role = delta.role
        if delta.content:
            self._content.append(delta.content)
        if delta.thinking:
            self._thinking.append(delta.thinking)
        self._tool_calls.extend(delta.tool_calls)
        self._images.extend(delta.images)

    @property
    def has_value(self) -> bool:
        return bool(self._content or self._thinking or self._tool_calls)

    def to_message(self) -> Message:
        return Message(
            role=self._role or Role.ASSISTANT,
            content="".join(self._content),
            thinking="".join(self._thinking) or None,
            tool_calls=tuple(self._tool_calls),
            images=tuple(self._images),
        )


class _ChunkAggregator:
    """Shared bookkeeping: remember the terminal chunk, refuse appends after completion."""

    def __init__(self) -> None:
        self._last: Optional[ResponseChunk] = None
        self._completed = False

    def append(self, chunk: ResponseChunk) -> None:
        if self._completed:
            raise RuntimeError(f"{type(self).__name__} already completed")
        self._accumulate(chunk)
        if chunk.done:
            self._last = chunk

    def _accumulate(self, chunk: ResponseChunk) -> None:
        raise NotImplementedError

    def _terminal(self) -> ResponseChunk:
        if self._last is None:
            raise IncompleteStream(
                "Stream did not yield a chunk with done=true. "
                "The stream might be corrupted or incomplete."
            )
        self._completed = True
        return self._last


class TextAggregator(_ChunkAggregator):
    """Plain-text mode: the terminal chunk with every fragment's text concatenated."""

    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []

    def _accumulate(self, chunk: ResponseChunk) -> None:
        self._parts.append(chunk.text)

    def complete(self) -> ResponseChunk:
        last = self._terminal()
        return dataclasses.replace(last, response="".join(self._parts))


class MessageAggregator(_ChunkAggregator):
    """Structured mode: the terminal chunk with the merged message installed."""

    def __init__(self) -> None:
        super().__init__()
        self._merger = MessageMerger()

    def _accumulate(self, chunk: ResponseChunk) -> None:
        self._merger.append(chunk.message)

    def complete(self) -> ResponseChunk:
        last = self._terminal()
        return dataclasses.replace(last, message=self._merger.to_message())


class StringAggregator:
    """Concatenates a stream of plain strings. Always completes."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def append(self, item: str) -> None:
        self._parts.append(item)

    def complete(self) -> str:
        return "".join(self._parts)
