import httpx
import pytest

from ollama_bridge.client import OllamaClient
from ollama_bridge.config import Settings


@pytest.fixture
def make_client():
    """Build an OllamaClient whose HTTP traffic goes to *handler*."""

    def _make(handler, **settings):
        settings.setdefault("model", "llama3.2")
        return OllamaClient(Settings(**settings), transport=httpx.MockTransport(handler))

    return _make
