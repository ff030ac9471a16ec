"""langflow-chat - a minimal ChatDisplay that prints to stdout."""

import asyncio

import langflow_chat as lc


class PrintDisplay:
    def add_message(self, sender, text, is_thinking=False, timestamp=None):
        handle = {"sender": sender, "text": text}
        if not is_thinking:
            print(f"{sender}: {text}")
        return handle

    def update_message_content(self, handle, text):
        handle["text"] = text

    def remove_message(self, handle):
        pass

    def clear_thinking(self, handle):
        pass

    def mark_as_error(self, handle):
        print(f"[error] {handle['text']}")

    def clear_messages(self):
        pass

    def scroll_to_bottom(self):
        pass

    def set_input_disabled(self, disabled):
        if not disabled:
            print()

    def notify_session_id_changed(self, session_id):
        print(f"(session {session_id})")


async def main() -> None:
    display = PrintDisplay()
    async with lc.LangflowChatClient("http://localhost:3001/api/langflow", "support") as client:
        session = lc.SessionCoordinator(client, display)
        processor = lc.ChatMessageProcessor(client, session, display, enable_stream=False)
        await processor.process("hello")


asyncio.run(main())
