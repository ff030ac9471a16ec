"""Display capability interface.

The processor and session coordinator drive a UI only through this
protocol. A handle returned by add_message is opaque: it is passed back
to the other methods and never inspected.

One implementation per UI technology (see langflow_chat.console).
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

MessageHandle = Any


@runtime_checkable
class ChatDisplay(Protocol):
    def add_message(
        self,
        sender: str,
        text: str,
        is_thinking: bool = False,
        timestamp: str | None = None,
    ) -> MessageHandle | None:
        """Append a message. Returns None if the message could not be shown."""
        ...

    def update_message_content(self, handle: MessageHandle, text: str) -> None:
        """Replace a message's text."""
        ...

    def remove_message(self, handle: MessageHandle) -> None: ...

    def clear_thinking(self, handle: MessageHandle) -> None:
        """Drop the pending indicator from a placeholder."""
        ...

    def mark_as_error(self, handle: MessageHandle) -> None:
        """Restyle a message in place as an error message."""
        ...

    def clear_messages(self) -> None: ...

    def scroll_to_bottom(self) -> None: ...

    def set_input_disabled(self, disabled: bool) -> None: ...

    def notify_session_id_changed(self, session_id: str | None) -> None: ...
