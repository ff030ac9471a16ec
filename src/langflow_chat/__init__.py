"""langflow-chat v0.4 - async chat client for a Langflow chat proxy.

A turn is driven by ChatMessageProcessor; the UI is anything implementing
ChatDisplay. SessionCoordinator owns the session id and history replay.

Components:
- StreamDecoder: NDJSON fragments -> typed StreamEvents
- ChatMessageProcessor: one turn (placeholder, tokens, final reply or error)
- SessionCoordinator: session id, history loading, sender roles
- FlowIdentifierResolver: flow names/aliases -> canonical flow ids

Example:
    from rich.console import Console
    from langflow_chat import (
        ChatMessageProcessor, LangflowChatClient, SessionCoordinator,
    )
    from langflow_chat.console import ConsoleChatDisplay

    display = ConsoleChatDisplay(Console())
    async with LangflowChatClient("http://localhost:3001/api/langflow", "support") as client:
        coordinator = SessionCoordinator(client, display, welcome_message="Hi!")
        processor = ChatMessageProcessor(client, coordinator, display)
        await coordinator.start()
        await processor.process("hello")

Event flow (streaming):
    stream_started -> token* -> end     reply shown in the placeholder
    stream_started -> token* -> error   placeholder becomes an error message
"""

from .client import LangflowChatClient
from .config import ConnectionSettings, Profile, load_settings
from .decoder import StreamDecoder, decode_stream
from .display import ChatDisplay
from .errors import (
    ApplicationError,
    ConfigurationError,
    LangflowChatError,
    ProtocolError,
    TransportError,
)
from .flows import FlowIdentifierResolver, ResolutionReport
from .processor import ChatMessageProcessor
from .session import SessionCoordinator
from .types import (
    AddMessage,
    BotResponse,
    End,
    HistoryEntry,
    SenderConfig,
    StreamError,
    StreamEvent,
    StreamStarted,
    Token,
    UnknownEvent,
)

__all__ = [
    "ChatMessageProcessor",
    "SessionCoordinator",
    "FlowIdentifierResolver",
    "ResolutionReport",
    "StreamDecoder",
    "decode_stream",
    "LangflowChatClient",
    "ChatDisplay",
    "ConnectionSettings",
    "Profile",
    "load_settings",
    "SenderConfig",
    "BotResponse",
    "HistoryEntry",
    "StreamEvent",
    "StreamStarted",
    "Token",
    "AddMessage",
    "End",
    "StreamError",
    "UnknownEvent",
    "LangflowChatError",
    "TransportError",
    "ProtocolError",
    "ApplicationError",
    "ConfigurationError",
]
