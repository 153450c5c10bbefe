"""
Parameter normalization for ollama-bridge.

Public API
- Users pass a dict to `params` on `client.chat_stream`, `client.generate_stream`
  or to a `ConversationLoop`.

Contract
- Request-level keys stay at the top level:
  format: "json" | dict (JSON schema)
  keep_alive: str
  think: bool
  raw: bool
  system: str
  context: list[int]

- Everything else is a runtime model option and goes under `options`.
  Examples:
    options.temperature: float
    options.num_ctx: int
    options.seed: int
    options.stop: list[str]

Unknown top-level keys are moved into options.
A caller-supplied `options` dict is merged last and wins.
"""

from __future__ import annotations

import dataclasses
from typing import Any, TypeVar

T = TypeVar("T")

REQUEST_KEYS = {
    "format",
    "keep_alive",
    "think",
    "raw",
    "system",
    "context",
}


def normalize_params(params: dict | None) -> dict:
    """
    Normalize a user-supplied params dict to a single internal shape.

    Returns a dict with only request-level keys plus an `options` dict.
    Rules:
      - Keys not in REQUEST_KEYS are moved into options
      - If the caller already passed an `options` dict it is merged last
      - None values are dropped from options so the server applies its defaults

    Example
    -------
    >>> normalize_params({
    ...   "temperature": 0.2,
    ...   "think": True,
    ...   "options": {"num_ctx": 8192}
    ... })
    {'think': True, 'options': {'temperature': 0.2, 'num_ctx': 8192}}
    """
    if params is None:
        return {"options": {}}
    if not isinstance(params, dict):
        raise TypeError(f"params must be a dict, got {type(params).__name__}")

    std: dict = {}
    options: dict = {}

    user_options = params.get("options") or {}
    if user_options and not isinstance(user_options, dict):
        raise TypeError("params['options'] must be a dict")

    for key, value in params.items():
        if key == "options":
            continue
        if key in REQUEST_KEYS:
            std[key] = value
        else:
            options[key] = value

    merged = {**options, **user_options}
    std["options"] = {k: v for k, v in merged.items() if v is not None}

    return std


def merge_params(defaults: dict | None, overrides: dict | None) -> dict:
    """
    Shallow-merge defaults with per-call overrides, then normalize.

    Rules:
      - Top-level keys are overwritten by overrides
      - `options` is merged with overrides winning per key
    """
    base: dict[str, Any] = dict(defaults or {})
    if overrides:
        base_options = dict(base.get("options") or {})
        over_options = dict(overrides.get("options") or {})

        for k, v in overrides.items():
            if k != "options":
                base[k] = v

        base["options"] = {**base_options, **over_options}

    return normalize_params(base)


def apply_params(request: T, params: dict | None) -> T:
    """
    Return a copy of a ChatRequest/GenerateRequest with normalized params applied.

    Options are merged over the request's own options; request-level keys
    replace the request's fields. A request-level key the request type does
    not carry raises ValueError.
    """
    normalized = normalize_params(params)
    options = {**(request.options or {}), **normalized.pop("options")}
    names = {f.name for f in dataclasses.fields(request)}
    unsupported = set(normalized) - names
    if unsupported:
        raise ValueError(
            f"{type(request).__name__} does not accept {', '.join(sorted(unsupported))}"
        )
    return dataclasses.replace(request, options=options or None, **normalized)
