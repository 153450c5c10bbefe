"""Shared streaming utilities: NDJSON decoding and fold drivers."""
from __future__ import annotations

import json
from typing import (
    AsyncIterable,
    AsyncIterator,
    Callable,
    Iterable,
    Iterator,
    Optional,
    TypeVar,
)

from ollama_bridge.adapters import OllamaRequestAdapter
from ollama_bridge.aggregation import Aggregator
from ollama_bridge.cancellation import CancellationToken, guard
from ollama_bridge.errors import MalformedChunk, ResponseError
from ollama_bridge.types import ResponseChunk

__all__ = [
    "parse_chunk",
    "iter_chunks",
    "aiter_chunks",
    "stream_to_end",
    "stream_to_end_sync",
]

TIn = TypeVar("TIn")
TOut = TypeVar("TOut")

_ADAPTER = OllamaRequestAdapter()


def parse_chunk(line: str | bytes) -> ResponseChunk:
    """
    Decode a single NDJSON line into a ResponseChunk.

    Raises:
        MalformedChunk: the line is not valid UTF‑8/JSON or has the wrong shape.
        ResponseError: the line is an ``{"error": ...}`` record from the server.
    """
    try:
        text = line.decode("utf-8") if isinstance(line, bytes) else line
        raw = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedChunk(f"Could not decode stream line: {exc}", line, exc) from exc

    if not isinstance(raw, dict):
        raise MalformedChunk(
            f"Stream line must be a JSON object, got {type(raw).__name__}", line
        )
    if raw.get("error"):
        raise ResponseError(str(raw["error"]))

    try:
        return _ADAPTER.chunk_from(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedChunk(f"Unexpected chunk shape: {exc}", line, exc) from exc


def _is_blank(line: str | bytes) -> bool:
    return not line.strip()


def iter_chunks(lines: Iterable[str | bytes]) -> Iterator[ResponseChunk]:
    """Lazily decode a synchronous line source, one chunk per non‑blank line."""
    for line in lines:
        if _is_blank(line):
            continue
        yield parse_chunk(line)


async def aiter_chunks(
    lines: AsyncIterable[str | bytes],
    cancel: Optional[CancellationToken] = None,
) -> AsyncIterator[ResponseChunk]:
    """
    Lazily decode an asynchronous line source.

    Each line is read only when the consumer asks for the next chunk. When
    *cancel* fires while a read is pending the read is abandoned and
    ``Cancelled`` is raised.
    """
    iterator = aiter(lines)
    while True:
        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            line = await guard(anext(iterator), cancel)
        except StopAsyncIteration:
            return
        if _is_blank(line):
            continue
        yield parse_chunk(line)


async def stream_to_end(
    items: AsyncIterable[TIn],
    aggregator: Aggregator[TIn, TOut],
    item_callback: Optional[Callable[[TIn], None]] = None,
) -> TOut:
    """Drive *items* through *aggregator* and return its terminal value."""
    async for item in items:
        aggregator.append(item)
        if item_callback is not None:
            item_callback(item)
    return aggregator.complete()


def stream_to_end_sync(
    items: Iterable[TIn],
    aggregator: Aggregator[TIn, TOut],
    item_callback: Optional[Callable[[TIn], None]] = None,
) -> TOut:
    """Synchronous counterpart of :func:`stream_to_end`."""
    for item in items:
        aggregator.append(item)
        if item_callback is not None:
            item_callback(item)
    return aggregator.complete()
