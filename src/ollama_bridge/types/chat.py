"""Chat types shared by the decoder, the aggregators and the conversation loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from ollama_bridge.types.tool import ToolCall, ToolDescriptor


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class Message:
    """One entry of a conversation. Never mutated once built."""

    role: Role
    content: str = ""
    thinking: Optional[str] = None
    tool_calls: tuple[ToolCall, ...] = ()
    images: tuple[str, ...] = ()
    tool_name: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str, images: tuple[str, ...] = ()) -> "Message":
        return cls(Role.USER, content, images=tuple(images))

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(Role.ASSISTANT, content)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True, slots=True)
class DoneMetrics:
    """Performance counters reported on the terminal chunk.

    Durations are nanoseconds. The server may omit any of them, in which
    case they read as zero.
    """

    total_duration: int = 0
    load_duration: int = 0
    prompt_eval_count: int = 0
    prompt_eval_duration: int = 0
    eval_count: int = 0
    eval_duration: int = 0

    @property
    def tokens_per_second(self) -> float:
        if not self.eval_duration:
            return 0.0
        return self.eval_count / (self.eval_duration / 1e9)


@dataclass(frozen=True, slots=True)
class ResponseChunk:
    """One decoded line of a streamed ``/api/chat`` or ``/api/generate`` response."""

    model: str = ""
    created_at: str = ""
    done: bool = False
    message: Optional[Message] = None
    response: Optional[str] = None
    done_reason: Optional[str] = None
    metrics: Optional[DoneMetrics] = None
    context: Optional[tuple[int, ...]] = None

    @property
    def text(self) -> str:
        """Text fragment carried by this chunk, whichever endpoint produced it."""
        if self.response is not None:
            return self.response
        if self.message is not None:
            return self.message.content
        return ""

    @property
    def created(self) -> Optional[datetime]:
        if not self.created_at:
            return None
        try:
            return datetime.fromisoformat(self.created_at)
        except ValueError:
            return None


@dataclass
class ChatRequest:
    """Body of a ``POST /api/chat`` request."""

    model: str
    messages: list[Message] = field(default_factory=list)
    tools: list[ToolDescriptor] = field(default_factory=list)
    options: Optional[dict[str, Any]] = None
    format: Optional[str | dict[str, Any]] = None
    keep_alive: Optional[str] = None
    think: Optional[bool] = None
    stream: bool = True


@dataclass
class GenerateRequest:
    """Body of a ``POST /api/generate`` request."""

    model: str
    prompt: str = ""
    system: Optional[str] = None
    images: list[str] = field(default_factory=list)
    options: Optional[dict[str, Any]] = None
    format: Optional[str | dict[str, Any]] = None
    keep_alive: Optional[str] = None
    think: Optional[bool] = None
    raw: Optional[bool] = None
    context: Optional[list[int]] = None
    stream: bool = True
