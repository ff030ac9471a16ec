"""ChatMessageProcessor - one conversational turn.

States:
    idle -> sending -> streaming | awaiting_response -> settled -> idle

Design:
    process(text) disables input, shows a "thinking" placeholder, then
    either consumes stream events or awaits one full response. Every failure
    ends as exactly one visible error message; process() never raises.

    Per-turn state lives in a TurnContext, not on the processor. The
    processor holds at most one live TurnContext; a process() call made while
    a turn is live is ignored.

    The UI is reached only through the ChatDisplay protocol. Session ids
    reported by the backend go to SessionCoordinator.

Teardown:
    teardown() marks the processor as torn down. Network awaits that resume
    afterwards make no further display calls.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import ApplicationError
from .types import (
    AddMessage,
    BotResponse,
    End,
    SenderConfig,
    StreamError,
    StreamEvent,
    StreamStarted,
    Token,
    TurnState,
    UnknownEvent,
)
from .utils import now_iso

if TYPE_CHECKING:
    from .client import LangflowChatClient
    from .display import ChatDisplay, MessageHandle
    from .session import SessionCoordinator

logger = logging.getLogger(__name__)

THINKING_TEXT = "..."
NO_CONTENT_STREAMED = "(no content streamed)"
NO_VALID_RESPONSE = "Sorry, I couldn't get a valid response."


@dataclass(eq=False)
class TurnContext:
    """State of one turn.

    handle: placeholder message, or None if the display could not show one
    text: accumulated token text
    thinking: the placeholder still shows its pending indicator
    settled: the placeholder holds its final content (reply or error)
    failed: the turn ended with an error message
    """

    message: str
    handle: MessageHandle | None = None
    text: str = ""
    thinking: bool = False
    settled: bool = False
    failed: bool = False

    @property
    def placeholder_active(self) -> bool:
        return self.handle is not None and not self.settled


class ChatMessageProcessor:
    """Drives a single turn against a LangflowChatClient.

    Example:
        processor = ChatMessageProcessor(client, coordinator, display)
        await processor.process("hello")
    """

    def __init__(
        self,
        client: LangflowChatClient,
        session: SessionCoordinator,
        display: ChatDisplay,
        senders: SenderConfig | None = None,
        enable_stream: bool | Callable[[], bool] = True,
        response_timeout: float | None = None,
    ):
        self.client = client
        self.session = session
        self.display = display
        self.senders = senders or SenderConfig()
        self.enable_stream = enable_stream
        self.response_timeout = response_timeout
        self.state: TurnState = "idle"
        self.turn: TurnContext | None = None
        self.torn_down = False

    def use_stream(self) -> bool:
        if callable(self.enable_stream):
            return bool(self.enable_stream())
        return self.enable_stream

    def teardown(self) -> None:
        """Detach from the display. In-flight turns finish silently."""
        self.torn_down = True
        self.turn = None

    async def process(self, message: str) -> None:
        """Process one user message. Never raises."""
        if self.torn_down:
            logger.debug("process() after teardown ignored")
            return
        if self.turn is not None:
            logger.warning("process() called while a turn is in progress; ignored")
            return

        logger.info("Processing message: %r", message[:80])
        turn = TurnContext(message=message)
        self.turn = turn
        self.state = "sending"
        self.display.set_input_disabled(True)

        try:
            turn.handle = self.display.add_message(self.senders.bot, THINKING_TEXT, True, now_iso())
            turn.thinking = turn.handle is not None

            session_id = self.session.current_session_id
            if self.use_stream():
                self.state = "streaming"
                await self.handle_streaming_response(turn, session_id)
            else:
                self.state = "awaiting_response"
                await self.handle_full_response(turn, session_id)
            self.state = "settled"
        except Exception:
            # raised by a display callback
            logger.exception("Unexpected failure while processing message")
        finally:
            if self.turn is turn:
                self.turn = None
            if not self.torn_down:
                self.display.set_input_disabled(False)
            self.state = "idle"
            logger.info("Finished processing message")

    def is_current(self, turn: TurnContext) -> bool:
        return not self.torn_down and self.turn is turn

    # -- streaming -----------------------------------------------------------

    async def handle_streaming_response(self, turn: TurnContext, session_id: str | None) -> None:
        events = self.client.stream_message(turn.message, session_id)
        try:
            while True:
                try:
                    event = await self.next_event(events)
                except StopAsyncIteration:
                    break
                if not self.is_current(turn):
                    return
                if not self.apply_stream_event(turn, event):
                    break
        except Exception as e:
            if not self.is_current(turn):
                return
            cause = str(e) or type(e).__name__
            logger.error("Failed to process stream: %s", cause)
            self.fail(turn, f"Stream Error: {cause}", f"Stream Error: {cause}")
        finally:
            await self.close_events(events)

        if self.is_current(turn) and turn.thinking and not turn.settled:
            # Stream ended without tokens or an end event
            self.finalize(turn, NO_CONTENT_STREAMED)

    async def next_event(self, events: AsyncIterator[StreamEvent]) -> StreamEvent:
        """Wait for the next event, bounded by response_timeout."""
        if self.response_timeout is None:
            return await anext(events)
        try:
            return await asyncio.wait_for(self.pull_event(events), self.response_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"no response within {self.response_timeout:g} seconds") from None

    @staticmethod
    async def pull_event(events: AsyncIterator[StreamEvent]) -> StreamEvent:
        return await anext(events)

    @staticmethod
    async def close_events(events: AsyncIterator[StreamEvent]) -> None:
        aclose = getattr(events, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.debug("Closing event stream failed: %s", e)

    def apply_stream_event(self, turn: TurnContext, event: StreamEvent) -> bool:
        """Apply one event. Returns False when the turn is over."""
        if isinstance(event, StreamStarted):
            if event.session_id:
                self.session.process_session_id_update_from_flow(event.session_id)
            return True

        if isinstance(event, Token):
            self.apply_token(turn, event)
            return True

        if isinstance(event, AddMessage):
            logger.debug("add_message event during stream: %s", event.payload)
            return True

        if isinstance(event, End):
            self.apply_end(turn, event)
            return True

        if isinstance(event, StreamError):
            self.apply_error(turn, event)
            return False

        if isinstance(event, UnknownEvent):
            logger.warning("Received unknown stream event type: %s", event.name)
        return True

    def apply_token(self, turn: TurnContext, event: Token) -> None:
        if turn.handle is not None and turn.thinking and event.chunk:
            self.display.update_message_content(turn.handle, "")
            self.display.clear_thinking(turn.handle)
            turn.thinking = False

        turn.text += event.chunk
        if turn.handle is not None and not turn.thinking and not turn.settled:
            self.display.update_message_content(turn.handle, turn.text)
        self.display.scroll_to_bottom()

    def apply_end(self, turn: TurnContext, event: End) -> None:
        final = event.reply or turn.text or NO_CONTENT_STREAMED
        if not turn.settled:
            self.finalize(turn, final)
        elif turn.handle is not None and not turn.failed:
            # Repeated end event: refresh the reply already shown
            self.display.update_message_content(turn.handle, final)
        else:
            logger.debug("end event after the turn settled; ignored")
        if event.session_id:
            self.session.process_session_id_update_from_flow(event.session_id)

    def apply_error(self, turn: TurnContext, event: StreamError) -> None:
        error = ApplicationError(event.message, event.detail, event.code)
        logger.error("Stream error event: %s", error)
        fallback = f"Stream Error: {event.message}"
        if event.detail:
            fallback += f" ({event.detail})"
        self.fail(turn, str(error), fallback)

    # -- full response ---------------------------------------------------------

    async def handle_full_response(self, turn: TurnContext, session_id: str | None) -> None:
        try:
            request = self.client.send_message(turn.message, session_id)
            if self.response_timeout is not None:
                result = await asyncio.wait_for(request, self.response_timeout)
            else:
                result = await request
        except Exception as e:
            if not self.is_current(turn):
                return
            cause = str(e) or type(e).__name__
            if isinstance(e, asyncio.TimeoutError):
                cause = f"no response within {self.response_timeout:g} seconds"
            logger.error("Failed to send message: %s", cause)
            self.fail(turn, f"Error sending message: {cause}", f"Error: {cause}")
            return

        if not self.is_current(turn):
            return
        self.apply_response(turn, result)

    def apply_response(self, turn: TurnContext, result: BotResponse) -> None:
        if result.reply:
            self.finalize(turn, result.reply)
        elif result.error:
            error = ApplicationError(result.error, result.detail)
            logger.error("Backend error response: %s", error)
            self.fail(turn, str(error), str(error))
        else:
            logger.warning("No reply content or error in response")
            self.finalize(turn, NO_VALID_RESPONSE)

        if result.session_id:
            self.session.process_session_id_update_from_flow(result.session_id)

    # -- settling --------------------------------------------------------------

    def finalize(self, turn: TurnContext, text: str) -> None:
        """Put the final content into the placeholder, or add a fresh message."""
        if turn.placeholder_active:
            self.display.update_message_content(turn.handle, text)
            if turn.thinking:
                self.display.clear_thinking(turn.handle)
        else:
            logger.warning("Placeholder not available; adding a new message")
            self.display.add_message(self.senders.bot, text, False, now_iso())
        turn.thinking = False
        turn.settled = True
        self.display.scroll_to_bottom()

    def fail(self, turn: TurnContext, in_place: str, fallback: str) -> None:
        """Convert the placeholder into an error message, or add one."""
        if turn.failed:
            return
        if turn.placeholder_active:
            self.display.update_message_content(turn.handle, in_place)
            self.display.mark_as_error(turn.handle)
        else:
            self.display.add_message(self.senders.error, fallback, False, now_iso())
        turn.thinking = False
        turn.settled = True
        turn.failed = True
        self.display.scroll_to_bottom()

