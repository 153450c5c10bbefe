"""
Ollama Bridge - streaming chat, tool calling and conversation loops for Ollama.
"""

import logging

from .aggregation import (
    Aggregator,
    MessageAggregator,
    MessageMerger,
    StringAggregator,
    TextAggregator,
)
from .cancellation import CancellationToken
from .client import OllamaClient
from .config import Settings
from .conversation import Chat, ConversationLoop, ConversationResult, ConversationStatus
from .errors import (
    Cancelled,
    IncompleteStream,
    MalformedChunk,
    ModelDoesNotSupportTools,
    OllamaBridgeError,
    ResponseError,
    ToolExecutionFault,
    ToolResolutionFailure,
    TransportFailure,
    TurnLimitExceeded,
)
from .params import merge_params, normalize_params
from .stream_utils import aiter_chunks, iter_chunks, parse_chunk, stream_to_end
from .tools import (
    AsyncFunctionTool,
    DefaultToolInvoker,
    FunctionTool,
    ToolFaultPolicy,
    ToolInvoker,
    tool,
)
from .types import (
    AsyncInvokable,
    ChatRequest,
    DoneMetrics,
    GenerateRequest,
    Invokable,
    Message,
    ResponseChunk,
    Role,
    ToolCall,
    ToolDescriptor,
    ToolResult,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "OllamaClient",
    "Settings",
    "Chat",
    "ConversationLoop",
    "ConversationResult",
    "ConversationStatus",
    "CancellationToken",
    "Aggregator",
    "MessageAggregator",
    "MessageMerger",
    "StringAggregator",
    "TextAggregator",
    "aiter_chunks",
    "iter_chunks",
    "parse_chunk",
    "stream_to_end",
    "merge_params",
    "normalize_params",
    "AsyncFunctionTool",
    "DefaultToolInvoker",
    "FunctionTool",
    "ToolFaultPolicy",
    "ToolInvoker",
    "tool",
    "AsyncInvokable",
    "ChatRequest",
    "DoneMetrics",
    "GenerateRequest",
    "Invokable",
    "Message",
    "ResponseChunk",
    "Role",
    "ToolCall",
    "ToolDescriptor",
    "ToolResult",
    "OllamaBridgeError",
    "TransportFailure",
    "ResponseError",
    "ModelDoesNotSupportTools",
    "MalformedChunk",
    "IncompleteStream",
    "ToolResolutionFailure",
    "ToolExecutionFault",
    "Cancelled",
    "TurnLimitExceeded",
]
