"""Error taxonomy for langflow-chat.

TransportError: network failure during any request.
ProtocolError: malformed stream record or response body.
ApplicationError: explicit error reported by the backend.
ConfigurationError: missing settings or unresolved flow identifiers.

Per-turn operations (ChatMessageProcessor.process,
SessionCoordinator.set_session_id_and_load_history) never raise these to
their callers; they are converted to visible messages there.
"""

from __future__ import annotations


class LangflowChatError(Exception):
    """Base class for all langflow-chat errors."""


class TransportError(LangflowChatError):
    """Network failure while talking to the backend."""


class ProtocolError(LangflowChatError):
    """Data from the backend did not have the expected shape."""

    def __init__(self, message: str, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class ApplicationError(LangflowChatError):
    """The backend answered with an explicit error."""

    def __init__(self, message: str, detail: str | None = None, code: int | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.code = code

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class ConfigurationError(LangflowChatError):
    """Settings are missing or a profile cannot be used."""
