from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Final, Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_HOST: Final[str] = "http://localhost:11434"
DEFAULT_TIMEOUT: Final[float] = 120.0

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class Settings:
    """Connection settings for :class:`~ollama_bridge.client.OllamaClient`.

    Nothing in the package reads the environment on its own; build a
    ``Settings`` (directly or via :meth:`from_env`) and pass it in.
    """

    host: str = DEFAULT_HOST
    model: str = ""
    timeout: float = DEFAULT_TIMEOUT
    keep_alive: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)
    trace_chunks: bool = False

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        """Build settings from ``OLLAMA_*`` variables, loading ``.env`` first."""
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        timeout = os.getenv("OLLAMA_TIMEOUT")
        try:
            timeout_value = float(timeout) if timeout else DEFAULT_TIMEOUT
        except ValueError as exc:
            raise RuntimeError(f"OLLAMA_TIMEOUT must be a number, got {timeout!r}") from exc

        return cls(
            host=_normalize_host(os.getenv("OLLAMA_HOST") or DEFAULT_HOST),
            model=os.getenv("OLLAMA_MODEL", ""),
            timeout=timeout_value,
            keep_alive=os.getenv("OLLAMA_KEEP_ALIVE") or None,
            trace_chunks=os.getenv("OLLAMA_TRACE_CHUNKS", "").lower() in _TRUTHY,
        )


def _normalize_host(host: str) -> str:
    """Accept the ``host:port`` shorthand the Ollama CLI allows."""
    host = host.strip().rstrip("/")
    if "://" not in host:
        host = f"http://{host}"
    return host


__all__ = ["Settings", "DEFAULT_HOST", "DEFAULT_TIMEOUT"]
