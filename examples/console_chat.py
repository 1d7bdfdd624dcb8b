"""Minimal console chat: free-form conversation with a bounded history."""

import asyncio

from chat_core.agents.completion import CompletionClient
from chat_core.config.settings import settings
from chat_core.domain.conversation import HistoryWindow
from chat_core.prompts import load_system_prompt
from chat_core.providers import create_provider


async def main() -> None:
    client = CompletionClient(
        create_provider(),
        model=settings.default_model,
        timeout=settings.completion_timeout,
        max_attempts=settings.completion_max_attempts,
    )
    history = HistoryWindow(load_system_prompt(), max_messages=settings.history_max_messages)
    print("Type 'exit' to quit.")
    while True:
        user_input = await asyncio.to_thread(input, "You: ")
        reply = await client.converse(history, user_input)
        if reply is None:
            break
        print("Assistant:", reply)


if __name__ == "__main__":
    asyncio.run(main())
