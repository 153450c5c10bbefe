from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Literal

from ollama_bridge import (
    CancellationToken,
    ConversationLoop,
    Message,
    OllamaClient,
    Settings,
    ToolCall,
    ToolResult,
    tool,
)

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


@tool
def get_weather(location: str, unit: Literal["celsius", "fahrenheit"] = "celsius") -> str:
    """Get the current weather in a given location.

    Args:
        location: City and state, e.g. San Francisco, CA
        unit: Units (celsius or fahrenheit).
    """
    # imagine we call a real weather API here
    return "15 °C, mostly cloudy"


@tool
async def get_time(timezone: str) -> str:
    """Get the current time in an IANA time zone."""
    await asyncio.sleep(0.1)
    return "09:41"


def log_call(call: ToolCall) -> None:
    logger.info("Model called %s", call)


def log_result(result: ToolResult) -> None:
    logger.info("Tool returned %s", result.content)


async def tool_conversation(model: str, timeout: float) -> None:
    """
    Run a tool-calling conversation until the model answers.

    The token is cancelled after *timeout* seconds, which ends the run
    as CANCELLED instead of raising.
    """
    cancel = CancellationToken()
    asyncio.get_running_loop().call_later(timeout, cancel.cancel)

    async with OllamaClient(Settings.from_env()) as client:
        loop = ConversationLoop(
            client,
            model,
            tools=[get_weather, get_time],
            max_turns=5,
            on_tool_call=log_call,
            on_tool_result=log_result,
        )
        messages = [Message.user("What's the weather and the time in San Francisco?")]
        result = await loop.run(messages, cancel)

    if result.is_error:
        logger.warning("Conversation %s: %s", result.status, result.error)
        return
    logger.info("%s says: %s", model, result.content)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--model", default="llama3.2")
    parser.add_argument("--timeout", type=float, default=60.0)
    args = parser.parse_args()

    asyncio.run(tool_conversation(args.model, args.timeout))
