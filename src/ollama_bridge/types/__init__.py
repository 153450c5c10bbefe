from .chat import (
    ChatRequest,
    DoneMetrics,
    GenerateRequest,
    Message,
    ResponseChunk,
    Role,
)
from .tool import (
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
    "ChatRequest",
    "DoneMetrics",
    "GenerateRequest",
    "Message",
    "ResponseChunk",
    "Role",
    "AsyncInvokable",
    "Invokable",
    "Tool",
    "ToolCall",
    "ToolDescriptor",
    "ToolParameters",
    "ToolProperty",
    "ToolResult",
]
