import asyncio

import httpx

from ollama_bridge import Chat, OllamaClient, Settings


async def chat_example_default_client():
    settings = Settings.from_env()

    async with OllamaClient(settings) as client:
        chat = Chat(
            client,
            settings.model or "llama3.2",
            system="You are a helpful assistant.",
            options={"temperature": 0.7},
            on_token=lambda text: print(text, end="", flush=True),
        )
        result = await chat.send("What's your name?")
        print()
        result.raise_for_error()
        print(f"{result.metrics.eval_count} tokens, {result.metrics.tokens_per_second:.1f} tok/s")


async def chat_example_pass_client():
    http = httpx.AsyncClient(base_url="http://localhost:11434", timeout=30)

    async with OllamaClient.from_client(http) as client:
        chat = Chat(client, "llama3.2", think=True, on_think=lambda t: print(t, end=""))
        result = await chat.send("Why is the sky blue? One sentence.")
        print()
        print("Answer:", result.content)


if __name__ == "__main__":
    asyncio.run(chat_example_default_client())
    asyncio.run(chat_example_pass_client())
