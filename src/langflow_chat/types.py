"""Event and wire types for langflow-chat."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import as_text

# StreamEvent is the union of everything StreamDecoder may emit:
# - StreamStarted: the backend (or client) announced the session id
# - Token: incremental reply text
# - AddMessage: auxiliary message from the flow (observational)
# - End: the turn finished; may carry the full reply and session id
# - StreamError: backend error event, or a record that failed to parse
# - UnknownEvent: well-formed record with an unrecognised event name


@dataclass(frozen=True, slots=True)
class StreamStarted:
    """Emitted when a stream opens with a known session id."""

    type: Literal["stream_started"] = "stream_started"
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class Token:
    """One chunk of reply text."""

    type: Literal["token"] = "token"
    chunk: str = ""


@dataclass(frozen=True, slots=True)
class AddMessage:
    """Auxiliary message pushed by the flow mid-stream."""

    type: Literal["add_message"] = "add_message"
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class End:
    """Emitted once the flow finished.

    reply is the flow's complete answer when the backend sends one;
    otherwise the accumulated tokens are the answer.
    """

    type: Literal["end"] = "end"
    reply: str | None = None
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class StreamError:
    """Backend error event, or a synthetic one for an unparseable record.

    raw holds the offending segment for synthetic parse errors.
    """

    type: Literal["error"] = "error"
    message: str = ""
    detail: str | None = None
    code: int | None = None
    raw: str | None = None


@dataclass(frozen=True, slots=True)
class UnknownEvent:
    """Well-formed record whose event name is not recognised."""

    type: Literal["unknown"] = "unknown"
    name: str = ""
    data: Mapping[str, Any] = field(default_factory=dict)


StreamEvent = StreamStarted | Token | AddMessage | End | StreamError | UnknownEvent

TurnState = Literal["idle", "sending", "streaming", "awaiting_response", "settled"]


@dataclass(frozen=True, slots=True)
class SenderConfig:
    """Display labels for the four message roles."""

    user: str = "Me"
    bot: str = "Assistant"
    error: str = "Error"
    system: str = "System"


class BotResponse(BaseModel):
    """Non-streaming chat response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    reply: str | None = None
    session_id: str | None = Field(default=None, alias="sessionId")
    error: str | None = None
    detail: str | None = None

    @field_validator("error", "detail", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        # FastAPI-style validation errors put a list in detail
        return as_text(value)


class HistoryEntry(BaseModel):
    """One stored message of a session's history."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    text: str | None = None
    sender: str | None = None
    sender_name: str | None = None
    session_id: str | None = None
    timestamp: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        return as_text(value)
