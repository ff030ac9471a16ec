"""pytest configuration for langflow-chat tests."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from langflow_chat.types import BotResponse, StreamStarted  # noqa: E402


class Message:
    """Handle returned by RecordingDisplay.add_message."""

    def __init__(self, sender, text, thinking, timestamp):
        self.sender = sender
        self.text = text
        self.thinking = thinking
        self.error = False
        self.timestamp = timestamp


class RecordingDisplay:
    """ChatDisplay that keeps messages in a list and logs every call."""

    def __init__(self, accept_messages: bool = True):
        self.accept_messages = accept_messages
        self.messages: list[Message] = []
        self.calls: list[tuple] = []
        self.input_disabled = False
        self.session_ids: list[str | None] = []

    def add_message(self, sender, text, is_thinking=False, timestamp=None):
        self.calls.append(("add_message", sender, text, is_thinking))
        if not self.accept_messages:
            return None
        message = Message(sender, text, is_thinking, timestamp)
        self.messages.append(message)
        return message

    def update_message_content(self, handle, text):
        self.calls.append(("update_message_content", text))
        handle.text = text

    def remove_message(self, handle):
        self.calls.append(("remove_message",))
        self.messages.remove(handle)

    def clear_thinking(self, handle):
        self.calls.append(("clear_thinking",))
        handle.thinking = False

    def mark_as_error(self, handle):
        self.calls.append(("mark_as_error",))
        handle.thinking = False
        handle.error = True

    def clear_messages(self):
        self.calls.append(("clear_messages",))
        self.messages.clear()

    def scroll_to_bottom(self):
        self.calls.append(("scroll_to_bottom",))

    def set_input_disabled(self, disabled):
        self.calls.append(("set_input_disabled", disabled))
        self.input_disabled = disabled

    def notify_session_id_changed(self, session_id):
        self.calls.append(("notify_session_id_changed", session_id))
        self.session_ids.append(session_id)

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


class ScriptedClient:
    """Stand-in for LangflowChatClient.

    events: what stream_message yields after StreamStarted
    stream_exception: raised after the scripted events
    response / send_exception: result of send_message
    history / history_exception: result of get_message_history
    delay: seconds to sleep before each event and each response
    """

    def __init__(self):
        self.events: list = []
        self.stream_exception: Exception | None = None
        self.response = BotResponse(reply="ok")
        self.send_exception: Exception | None = None
        self.history = None
        self.history_exception: Exception | None = None
        self.delay = 0.0
        self.sent: list[tuple[str, str | None]] = []
        self.history_requests: list[str] = []
        self.stream_closed = False

    async def stream_message(self, message, session_id=None):
        self.sent.append((message, session_id))
        try:
            yield StreamStarted(session_id=session_id or "generated-session")
            for event in self.events:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield event
            if self.stream_exception is not None:
                raise self.stream_exception
        finally:
            self.stream_closed = True

    async def send_message(self, message, session_id=None):
        self.sent.append((message, session_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.send_exception is not None:
            raise self.send_exception
        return self.response

    async def get_message_history(self, session_id):
        self.history_requests.append(session_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.history_exception is not None:
            raise self.history_exception
        return self.history


@pytest.fixture
def display():
    return RecordingDisplay()


@pytest.fixture
def client():
    return ScriptedClient()


@pytest.fixture
def refusing_display():
    """Display whose add_message cannot show messages (returns None)."""
    return RecordingDisplay(accept_messages=False)
