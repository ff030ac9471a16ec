"""langflow-chat Quickstart - one streamed turn on the console."""

import asyncio

from rich.console import Console

import langflow_chat as lc
from langflow_chat.console import ConsoleChatDisplay


async def main() -> None:
    settings = lc.load_settings()
    display = ConsoleChatDisplay(Console())

    async with lc.LangflowChatClient(settings.chat_base_url, "support") as client:
        session = lc.SessionCoordinator(client, display, welcome_message="How can I help?")
        processor = lc.ChatMessageProcessor(client, session, display)

        await session.start()
        await processor.process("What is Langflow?")
        # Same session: the backend sees the previous turn
        await processor.process("And how do I deploy it?")


asyncio.run(main())
