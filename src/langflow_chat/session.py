"""SessionCoordinator - conversation identity and history replay.

Design:
    The coordinator owns the current session id and whether its history has
    been shown. Session ids arrive from two directions:

    - The host UI picks a session: set_session_id_and_load_history(id)
      adopts it and replays the stored history.
    - The backend reports one mid-turn: process_session_id_update_from_flow(id)
      adopts it without reloading (the reply is already on screen) and
      notifies the display once per distinct value.

    Any change of id resets is_history_loaded. A failed history fetch still
    counts as loaded, so the same id is not refetched on every call.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .types import HistoryEntry, SenderConfig
from .utils import normalize_timestamp

if TYPE_CHECKING:
    from .client import LangflowChatClient
    from .display import ChatDisplay

logger = logging.getLogger(__name__)

HISTORY_ERROR_MESSAGE = "Error loading chat history."


def resolve_sender(entry: HistoryEntry, senders: SenderConfig) -> str:
    """Pick the display role for a stored message.

    Precedence:
        1. sender_name equal to the configured user or bot label
        2. sender "user" (any case) -> user label
        3. sender "bot" or "machine" (any case) -> bot label
        4. sender_name as given
        5. system label
    """
    if entry.sender_name == senders.user:
        return senders.user
    if entry.sender_name == senders.bot:
        return senders.bot

    raw_sender = (entry.sender or "").lower()
    if raw_sender == "user":
        return senders.user
    if raw_sender in ("bot", "machine"):
        return senders.bot

    if entry.sender_name:
        return entry.sender_name

    logger.warning(
        "Unidentified sender in history: sender=%r, sender_name=%r. Using system sender.",
        entry.sender,
        entry.sender_name,
    )
    return senders.system


class SessionCoordinator:
    """Session id state plus history loading for one chat display.

    Example:
        coordinator = SessionCoordinator(client, display, welcome_message="Hi!")
        await coordinator.start(saved_session_id)
    """

    def __init__(
        self,
        client: LangflowChatClient,
        display: ChatDisplay,
        senders: SenderConfig | None = None,
        welcome_message: str | None = None,
    ):
        self.client = client
        self.display = display
        self.senders = senders or SenderConfig()
        self.welcome_message = welcome_message
        self._current_session_id: str | None = None
        self._is_history_loaded = False
        self.torn_down = False

    @property
    def current_session_id(self) -> str | None:
        return self._current_session_id

    @property
    def is_history_loaded(self) -> bool:
        return self._is_history_loaded

    async def start(self, initial_session_id: str | None = None) -> None:
        """Show the initial state: the given session's history, or the welcome message."""
        if initial_session_id:
            logger.info("Initializing with session ID: %s", initial_session_id)
        else:
            logger.info("Initializing without a session ID")
        await self.set_session_id_and_load_history(initial_session_id)

    def teardown(self) -> None:
        """Detach from the display. Pending history loads finish silently."""
        self.torn_down = True

    def update_current_session_id(self, session_id: str | None) -> bool:
        """Adopt a session id. Returns True if it changed.

        Blank ids clear the session. Any change resets is_history_loaded.
        """
        new_id = session_id if session_id and session_id.strip() else None
        if new_id == self._current_session_id:
            return False

        self._current_session_id = new_id
        self._is_history_loaded = False
        if new_id is None:
            logger.info("Session ID cleared")
        else:
            logger.info("Session ID updated to: %s", new_id)
        return True

    def process_session_id_update_from_flow(self, session_id: str) -> None:
        """Apply a session id reported by the backend. Does not reload history."""
        logger.debug("Session ID update from flow: %s", session_id)
        if self.update_current_session_id(session_id) and not self.torn_down:
            self.display.notify_session_id_changed(self._current_session_id)

    async def set_session_id_and_load_history(self, session_id: str | None = None) -> None:
        """Switch to a session and replay its history. Never raises.

        A blank or missing id clears the session and shows the welcome message.
        """
        if self.torn_down:
            return

        try:
            await self.switch_session(session_id)
        except Exception:
            # raised by a display callback
            logger.exception("Unexpected failure while showing session %s", session_id)
            self._is_history_loaded = True

    async def switch_session(self, session_id: str | None) -> None:
        if not session_id or not session_id.strip():
            logger.info("No session ID provided; clearing session and messages")
            self.update_current_session_id(None)
            self.show_welcome()
            self._is_history_loaded = True
            return

        if session_id == self._current_session_id and self._is_history_loaded:
            logger.info("Session ID is already %s and history is loaded", session_id)
            return

        logger.info("Setting session ID to %s and loading history", session_id)
        self.update_current_session_id(session_id)

        try:
            history = await self.client.get_message_history(session_id)
        except Exception as e:
            if self.is_stale(session_id):
                return
            logger.error("Error loading chat history: %s", e)
            self.display.add_message(self.senders.error, HISTORY_ERROR_MESSAGE)
            self._is_history_loaded = True
            return

        if self.is_stale(session_id):
            return

        if history:
            await self.load_and_display_history(history)
        else:
            logger.info("No history for session %s", session_id)
            self.show_welcome()
            self._is_history_loaded = True

    def is_stale(self, session_id: str) -> bool:
        """True if a fetch for session_id finished after teardown or a session switch."""
        return self.torn_down or self._current_session_id != session_id

    async def load_and_display_history(self, history: Sequence[HistoryEntry]) -> None:
        """Clear the display and replay history entries in order."""
        if self._is_history_loaded:
            logger.info("History already loaded for the current session")
            return

        logger.info("Displaying %d history messages", len(history))
        self.display.clear_messages()
        for entry in history:
            self.display.add_message(
                resolve_sender(entry, self.senders),
                entry.text or "",
                False,
                normalize_timestamp(entry.timestamp),
            )
        self._is_history_loaded = True
        self.display.scroll_to_bottom()

    def show_welcome(self) -> None:
        self.display.clear_messages()
        if self.welcome_message:
            self.display.add_message(self.senders.bot, self.welcome_message)
            self.display.scroll_to_bottom()
