"""Tests for the Rich console display.

Intent: display logic without a terminal. Output goes to a StringIO.
"""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from langflow_chat.console import ConsoleChatDisplay
from langflow_chat.console.display import sanitize_text
from langflow_chat.display import ChatDisplay
from langflow_chat.processor import ChatMessageProcessor
from langflow_chat.session import SessionCoordinator
from langflow_chat.types import End, SenderConfig, Token


def make_display(**kwargs) -> tuple[ConsoleChatDisplay, io.StringIO]:
    out = io.StringIO()
    console = Console(file=out, width=120, force_terminal=False)
    return ConsoleChatDisplay(console, **kwargs), out


class TestConsoleDisplay:
    def test_implements_protocol(self):
        display, _ = make_display()
        assert isinstance(display, ChatDisplay)

    def test_message_printed_when_idle(self):
        display, out = make_display()

        display.add_message("Assistant", "Hello there", timestamp="2025-05-19T13:33:46Z")

        text = out.getvalue()
        assert "Assistant" in text
        assert "Hello there" in text
        assert display.pending == []

    def test_turn_messages_rendered_live(self):
        display, out = make_display()

        display.set_input_disabled(True)
        handle = display.add_message("Assistant", "...", is_thinking=True)
        assert display.pending == [handle]

        display.update_message_content(handle, "")
        display.clear_thinking(handle)
        display.update_message_content(handle, "streamed reply")
        display.set_input_disabled(False)

        assert display.live is None
        assert display.pending == []
        assert handle.thinking is False
        assert "streamed reply" in out.getvalue()

    def test_mark_as_error(self):
        display, _ = make_display()
        handle = display.add_message("Assistant", "...", is_thinking=True)

        display.mark_as_error(handle)

        assert handle.error is True
        assert handle.thinking is False
        assert display.border_style(handle) == "red"

    def test_border_styles_by_sender(self):
        senders = SenderConfig(user="Me", bot="Bot")
        display, _ = make_display(senders=senders)

        assert display.border_style(display.add_message("Me", "a")) == "blue"
        assert display.border_style(display.add_message("Bot", "b")) == "cyan"
        assert display.border_style(display.add_message("Error", "c")) == "red"
        assert display.border_style(display.add_message("Search", "d")) == "dim"

    def test_remove_and_clear(self):
        display, _ = make_display()
        first = display.add_message("Me", "a")
        display.add_message("Me", "b")

        display.remove_message(first)
        assert [m.text for m in display.messages] == ["b"]

        display.clear_messages()
        assert display.messages == []

    def test_session_notice(self):
        display, out = make_display()

        display.notify_session_id_changed("s-1")

        assert display.session_id == "s-1"
        assert "session: s-1" in out.getvalue()

    def test_sanitize_text(self):
        assert sanitize_text("a\x07b\\u001bc\nd") == "abc\nd"


class TestConsoleTurn:
    """A full turn rendered on the console display."""

    @pytest.mark.asyncio
    async def test_streamed_turn(self, client):
        display, out = make_display()
        client.events = [Token(chunk="Hel"), Token(chunk="lo"), End(reply="Hello!")]
        coordinator = SessionCoordinator(client, display)
        processor = ChatMessageProcessor(client, coordinator, display)

        await processor.process("hi")

        assert [m.text for m in display.messages] == ["Hello!"]
        assert display.live is None
        assert display.input_disabled is False
        assert "Hello!" in out.getvalue()
        assert display.session_id == "generated-session"
