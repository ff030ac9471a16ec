"""Console chat display with Rich.

Intent: ChatDisplay implementation for terminals.
Finished messages are printed as panels. While a turn is running (input
disabled) its messages are rendered in a Live region so the placeholder
and streamed tokens update in place.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ..types import SenderConfig
from ..utils import format_datetime, now_iso

SPINNER_FRAMES = ["◐", "◑", "◒", "◓"]

PANEL_WIDTH = 100


def sanitize_text(text: str) -> str:
    """Remove control characters and unicode escapes from text."""
    clean = re.sub(r"\\u[0-9a-fA-F]{4}", "", text)
    clean = "".join(c for c in clean if (c.isprintable() or c in "\n\t") and c not in "\x7f\x08")
    return clean


@dataclass(eq=False)
class ConsoleMessage:
    """Handle for one displayed message."""

    sender: str
    text: str
    thinking: bool = False
    error: bool = False
    timestamp: str | None = None


class ConsoleChatDisplay:
    """Rich-based ChatDisplay.

    Example:
        display = ConsoleChatDisplay(Console())
        coordinator = SessionCoordinator(client, display)
    """

    def __init__(
        self,
        console: Console,
        senders: SenderConfig | None = None,
        datetime_format: str = "%H:%M",
    ) -> None:
        self.console = console
        self.senders = senders or SenderConfig()
        self.datetime_format = datetime_format
        self.messages: list[ConsoleMessage] = []
        self.pending: list[ConsoleMessage] = []
        self.live: Live | None = None
        self.input_disabled = False
        self.session_id: str | None = None

    def get_spinner_frame(self) -> str:
        idx = int(time.time() * 4) % len(SPINNER_FRAMES)
        return SPINNER_FRAMES[idx]

    def border_style(self, message: ConsoleMessage) -> str:
        if message.error or message.sender == self.senders.error:
            return "red"
        if message.sender == self.senders.user:
            return "blue"
        if message.sender == self.senders.bot:
            return "cyan"
        return "dim"

    def render_message(self, message: ConsoleMessage) -> Panel:
        title = Text()
        title.append(message.sender, style="bold")
        title.append(f" {format_datetime(message.timestamp, self.datetime_format)}", style="dim")

        if message.thinking:
            body: RenderableType = Text(self.get_spinner_frame(), style="cyan")
        else:
            body = Text(message.text)

        return Panel(
            body,
            title=title,
            title_align="left",
            width=PANEL_WIDTH,
            border_style=self.border_style(message),
        )

    def build_display(self) -> Group:
        return Group(*(self.render_message(m) for m in self.pending))

    def update(self) -> None:
        if self.live:
            self.live.update(self.build_display())

    # ChatDisplay

    def add_message(
        self,
        sender: str,
        text: str,
        is_thinking: bool = False,
        timestamp: str | None = None,
    ) -> ConsoleMessage:
        message = ConsoleMessage(
            sender=sender,
            text=sanitize_text(text),
            thinking=is_thinking,
            timestamp=timestamp or now_iso(),
        )
        self.messages.append(message)
        if self.live is not None:
            self.pending.append(message)
            self.update()
        else:
            self.console.print(self.render_message(message))
        return message

    def update_message_content(self, handle: ConsoleMessage, text: str) -> None:
        handle.text = sanitize_text(text)
        self.update()

    def remove_message(self, handle: ConsoleMessage) -> None:
        if handle in self.messages:
            self.messages.remove(handle)
        if handle in self.pending:
            self.pending.remove(handle)
        self.update()

    def clear_thinking(self, handle: ConsoleMessage) -> None:
        handle.thinking = False
        self.update()

    def mark_as_error(self, handle: ConsoleMessage) -> None:
        handle.thinking = False
        handle.error = True
        self.update()

    def clear_messages(self) -> None:
        self.messages.clear()
        self.pending.clear()
        self.update()
        self.console.clear()

    def scroll_to_bottom(self) -> None:
        self.update()

    def set_input_disabled(self, disabled: bool) -> None:
        """Start the Live region for a turn, or close it when the turn ends."""
        self.input_disabled = disabled
        if disabled and self.live is None:
            self.live = Live(self.build_display(), console=self.console, refresh_per_second=4)
            self.live.start()
        elif not disabled and self.live is not None:
            self.update()
            self.live.stop()
            self.live = None
            self.pending.clear()

    def notify_session_id_changed(self, session_id: str | None) -> None:
        self.session_id = session_id
        self.console.print(Text(f"session: {session_id or '-'}", style="dim"))
