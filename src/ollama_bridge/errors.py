"""
Translate noisy transport tracebacks into the bridge's error taxonomy, while
preserving the original exception for full tracebacks.

Turn failures: ``TransportFailure``, ``MalformedChunk``, ``IncompleteStream``
and ``Cancelled``. Tool-local failures: ``ToolResolutionFailure`` and
``ToolExecutionFault``.
"""

from __future__ import annotations

import logging
from typing import Final, Optional, Type

import httpx

__all__: tuple[str, ...] = (
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
    "classify_error",
)


class OllamaBridgeError(RuntimeError):
    """Public bridge‐level exception.

    Attributes:
        original_exc: The underlying exception, if any.
    """

    original_exc: Optional[BaseException]

    def __init__(self, message: str, original_exc: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.original_exc = original_exc
        if original_exc is not None:
            self.__cause__ = original_exc


class TransportFailure(OllamaBridgeError):
    """The HTTP layer failed. Never retried by the bridge."""

    def __init__(
        self,
        message: str,
        original_exc: Optional[BaseException] = None,
        *,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, original_exc)
        self.status_code = status_code


class ResponseError(TransportFailure):
    """The server answered with an error body or an in-stream error record."""


class ModelDoesNotSupportTools(ResponseError):
    """Tools were offered to a model whose template has no tool support."""


class MalformedChunk(OllamaBridgeError):
    """A streamed line could not be decoded into a chunk."""

    def __init__(
        self, message: str, line: str | bytes = "", original_exc: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, original_exc)
        self.line = line


class IncompleteStream(OllamaBridgeError):
    """The stream ended without a chunk flagged ``done``."""


class ToolResolutionFailure(OllamaBridgeError):
    """No registered tool matches the requested function name."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool \"{tool_name}\" does not exist")
        self.tool_name = tool_name


class ToolExecutionFault(OllamaBridgeError):
    """A tool implementation raised."""

    def __init__(self, tool_name: str, original_exc: BaseException) -> None:
        super().__init__(f"Tool \"{tool_name}\" failed: {original_exc}", original_exc)
        self.tool_name = tool_name


class Cancelled(OllamaBridgeError):
    """Cancellation was requested by the caller and observed."""

    def __init__(self, message: str = "Operation was cancelled") -> None:
        super().__init__(message)


class TurnLimitExceeded(OllamaBridgeError):
    """The model kept requesting tools past the configured turn limit."""

    def __init__(self, max_turns: int) -> None:
        super().__init__(f"Conversation exceeded {max_turns} turns")
        self.max_turns = max_turns


TIMEOUT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    httpx.TimeoutException,
    TimeoutError,
)

CONN_ERRORS: Final[tuple[Type[Exception], ...]] = (
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
)


def classify_error(
    exc: Exception,
    logger: Optional[logging.Logger] = None,
) -> OllamaBridgeError:
    """Wrap a transport exception in the bridge taxonomy with a friendly, concise message."""
    log = logger or logging.getLogger("ollama_bridge.errors")

    if isinstance(exc, OllamaBridgeError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        log.warning("Wrapping HTTP status error", extra={"exc": exc})
        return TransportFailure(
            f"Server returned HTTP {status}: {exc}", exc, status_code=status
        )
    if isinstance(exc, TIMEOUT_ERRORS):
        msg = "Timed out waiting for the Ollama server"
    elif isinstance(exc, CONN_ERRORS):
        msg = "Connection problem – unable to reach the Ollama server"
    elif isinstance(exc, httpx.HTTPError):
        msg = "HTTP transport error"
    else:
        msg = exc.__class__.__name__

    log.warning("Wrapping transport exception", extra={"exc": exc})
    return TransportFailure(f"{msg}: {exc}", exc)
