"""
Async Ollama client with streaming chat() and generate() methods.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, Optional, Self

import httpx

from ollama_bridge.adapters import OllamaRequestAdapter
from ollama_bridge.aggregation import MessageAggregator, TextAggregator
from ollama_bridge.cancellation import CancellationToken, guard
from ollama_bridge.config import Settings
from ollama_bridge.errors import (
    ModelDoesNotSupportTools,
    ResponseError,
    classify_error,
)
from ollama_bridge.stream_utils import aiter_chunks, stream_to_end
from ollama_bridge.types import ChatRequest, GenerateRequest, ResponseChunk

CHAT_ENDPOINT = "/api/chat"
GENERATE_ENDPOINT = "/api/generate"

ChunkCallback = Callable[[ResponseChunk], None]


class OllamaClient:
    """
    Async client for the Ollama streaming endpoints.

    Use ``OllamaClient.from_client`` when you already have an ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.model = self.settings.model
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self._client = httpx.AsyncClient(
            base_url=self.settings.host,
            timeout=self.settings.timeout,
            headers=self.settings.headers,
            transport=transport,
        )
        self._adapter = OllamaRequestAdapter()

    @classmethod
    def from_client(
        cls,
        client: httpx.AsyncClient,
        *,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Build an ``OllamaClient`` around an already‑configured ``httpx.AsyncClient``.

        The client's ``base_url`` must point at the Ollama server.
        """
        if not isinstance(client, httpx.AsyncClient):
            raise TypeError(
                f"OllamaClient.from_client expects httpx.AsyncClient; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        self.settings = settings or Settings(host=str(client.base_url))
        self.model = self.settings.model
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or cls.__name__
        self._client = client
        self._adapter = OllamaRequestAdapter()
        return self

    @property
    def adapter(self) -> OllamaRequestAdapter:
        """Request adapter for the Ollama wire format."""
        return self._adapter

    # --- streaming ---------------------------------------------------------
    def chat_stream(
        self, request: ChatRequest, cancel: Optional[CancellationToken] = None
    ) -> AsyncIterator[ResponseChunk]:
        """
        Send a chat request and return the lazily decoded chunk stream.

        Nothing is sent until the first chunk is requested.
        """
        body = self._adapter.to_provider(request)
        body["model"] = request.model or self._default_model()
        if request.keep_alive is None and self.settings.keep_alive:
            body["keep_alive"] = self.settings.keep_alive
        return self._stream_post(CHAT_ENDPOINT, body, cancel)

    def generate_stream(
        self, request: GenerateRequest, cancel: Optional[CancellationToken] = None
    ) -> AsyncIterator[ResponseChunk]:
        """Send a completion request and return the lazily decoded chunk stream."""
        body = self._adapter.generate_to_provider(request)
        body["model"] = request.model or self._default_model()
        if request.keep_alive is None and self.settings.keep_alive:
            body["keep_alive"] = self.settings.keep_alive
        return self._stream_post(GENERATE_ENDPOINT, body, cancel)

    # --- aggregated --------------------------------------------------------
    async def chat(
        self,
        request: ChatRequest,
        cancel: Optional[CancellationToken] = None,
        item_callback: Optional[ChunkCallback] = None,
    ) -> ResponseChunk:
        """
        Stream a chat request to the end.

        Returns the terminal chunk with the merged message installed.
        """
        return await stream_to_end(
            self.chat_stream(request, cancel), MessageAggregator(), item_callback
        )

    async def generate(
        self,
        request: GenerateRequest,
        cancel: Optional[CancellationToken] = None,
        item_callback: Optional[ChunkCallback] = None,
    ) -> ResponseChunk:
        """
        Stream a completion request to the end.

        Returns the terminal chunk with the concatenated text as ``response``.
        """
        return await stream_to_end(
            self.generate_stream(request, cancel), TextAggregator(), item_callback
        )

    # --- internals ---------------------------------------------------------
    def _default_model(self) -> str:
        if not self.model:
            raise ValueError("No model given on the request and no default model configured")
        return self.model

    async def _stream_post(
        self,
        endpoint: str,
        body: dict,
        cancel: Optional[CancellationToken],
    ) -> AsyncIterator[ResponseChunk]:
        self._log(f"Sending request to Ollama model {body['model']} ({endpoint})")
        http_request = self._client.build_request("POST", endpoint, json=body)
        try:
            response = await guard(self._client.send(http_request, stream=True), cancel)
        except httpx.HTTPError as exc:
            raise classify_error(exc, self.logger) from exc

        try:
            await self._ensure_success(response)
            async for chunk in aiter_chunks(response.aiter_lines(), cancel):
                if self.settings.trace_chunks:
                    self._log(f"chunk done={chunk.done} text={chunk.text!r}", logging.DEBUG)
                yield chunk
        except httpx.HTTPError as exc:
            raise classify_error(exc, self.logger) from exc
        finally:
            await response.aclose()

    async def _ensure_success(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return

        await response.aread()
        try:
            error = response.json().get("error")
        except (ValueError, AttributeError):
            error = None
        message = str(error or response.text or response.reason_phrase)
        status = response.status_code

        self._log(f"Ollama returned HTTP {status}: {message}", logging.WARNING)
        if status == 400 and "does not support tools" in message:
            raise ModelDoesNotSupportTools(message, status_code=status)
        raise ResponseError(f"HTTP {status}: {message}", status_code=status)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    # --- lifecycle ---------------------------------------------------------
    async def aclose(self) -> None:
        """
        Close the underlying HTTP client.
        Safe to call multiple times.
        """
        await self._client.aclose()

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
