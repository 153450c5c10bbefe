"""Pure transformation adapters between the typed model and the wire format."""

from .ollama import OllamaRequestAdapter

__all__ = [
    "OllamaRequestAdapter",
]
