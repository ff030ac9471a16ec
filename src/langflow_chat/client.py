"""LangflowChatClient - HTTP transport to the chat proxy.

Endpoints (relative to the proxy base URL):
    POST {base}/chat/{profile_id}          {message, sessionId, stream}
    GET  {base}/chat/{profile_id}/history  ?session_id=...

Streaming responses are newline-delimited JSON and are decoded with
decode_stream(). Network failures raise TransportError; HTTP error statuses
are reported in-band (BotResponse.error or a StreamError event).
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import replace
from typing import Any

import httpx
from pydantic import ValidationError

from .decoder import decode_stream
from .errors import ProtocolError, TransportError
from .types import BotResponse, End, HistoryEntry, StreamError, StreamEvent, StreamStarted
from .utils import as_text

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def new_session_id() -> str:
    return str(uuid.uuid4())


class LangflowChatClient:
    """Async client for one chatbot profile.

    Example:
        async with LangflowChatClient("http://localhost:3001/api/langflow", "support") as client:
            async for event in client.stream_message("hello"):
                print(event)
    """

    def __init__(
        self,
        base_url: str,
        profile_id: str,
        http: httpx.AsyncClient | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
    ):
        if not profile_id or not profile_id.strip():
            raise ValueError("profile_id is required and cannot be empty.")

        self.profile_id = profile_id
        self.base_url = base_url.rstrip("/")
        self.chat_url = f"{self.base_url}/chat/{profile_id}"
        self.history_url = f"{self.chat_url}/history"
        self.owns_http = http is None
        self.http = http if http is not None else httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> LangflowChatClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self.owns_http:
            await self.http.aclose()

    async def send_message(self, message: str, session_id: str | None = None) -> BotResponse:
        """Send a message and wait for the complete reply.

        Raises:
            TransportError: network failure
            ProtocolError: the success body is not a JSON object
        """
        effective_session_id = session_id or new_session_id()
        body = {"message": message, "sessionId": effective_session_id, "stream": False}

        try:
            response = await self.http.post(
                self.chat_url, json=body, headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as e:
            logger.error("Failed to send message: %s", e)
            raise TransportError(str(e) or type(e).__name__) from e

        if response.is_error:
            error, detail, error_session_id = self.error_payload(response)
            logger.error("API error %s: %s (%s)", response.status_code, error, detail)
            return BotResponse(
                error=error,
                detail=detail,
                session_id=error_session_id or effective_session_id,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON response: {e}", raw=response.text) from e
        if not isinstance(data, dict):
            raise ProtocolError("Expected a JSON object response", raw=response.text)

        try:
            result = BotResponse.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(f"Unexpected response shape: {e}", raw=response.text) from e

        if not result.session_id:
            result.session_id = effective_session_id
        return result

    async def stream_message(
        self, message: str, session_id: str | None = None
    ) -> AsyncIterator[StreamEvent]:
        """Send a message and yield stream events as they arrive.

        The first event is always StreamStarted with the session id in use.
        End events without a session id get that same id.

        Raises:
            TransportError: network failure (raised from the iterator)
        """
        effective_session_id = session_id or new_session_id()
        yield StreamStarted(session_id=effective_session_id)

        body = {"message": message, "sessionId": effective_session_id, "stream": True}
        try:
            async with self.http.stream(
                "POST",
                self.chat_url,
                json=body,
                headers={"Accept": "application/x-ndjson"},
            ) as response:
                if response.is_error:
                    await response.aread()
                    error, detail, _ = self.error_payload(response)
                    logger.error("API stream error %s: %s (%s)", response.status_code, error, detail)
                    yield StreamError(message=error, detail=detail, code=response.status_code)
                    return

                async for event in decode_stream(response.aiter_text()):
                    if isinstance(event, End) and event.session_id is None:
                        event = replace(event, session_id=effective_session_id)
                    yield event
        except httpx.HTTPError as e:
            logger.error("General stream error: %s", e)
            raise TransportError(str(e) or type(e).__name__) from e

    async def get_message_history(self, session_id: str) -> list[HistoryEntry] | None:
        """Fetch the stored messages of a session.

        Returns:
            History entries in order, or None when the backend refused the request

        Raises:
            TransportError: network failure
            ProtocolError: the body is not a list of message objects
        """
        if not session_id:
            logger.error("Session ID is required to fetch message history.")
            return None

        try:
            response = await self.http.get(
                self.history_url,
                params={"session_id": session_id},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error("Failed to fetch message history: %s", e)
            raise TransportError(str(e) or type(e).__name__) from e

        if response.is_error:
            error, detail, _ = self.error_payload(response)
            logger.error(
                "History request failed with status %s: %s", response.status_code, detail or error
            )
            return None

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON history: {e}", raw=response.text) from e

        if data is None:
            return None
        if not isinstance(data, list):
            raise ProtocolError("Expected a JSON array of messages", raw=response.text)

        try:
            return [HistoryEntry.model_validate(item) for item in data]
        except ValidationError as e:
            raise ProtocolError(f"Unexpected history entry: {e}", raw=response.text) from e

    @staticmethod
    def error_payload(response: httpx.Response) -> tuple[str, str | None, str | None]:
        """Extract (error, detail, session_id) from an error response."""
        error = f"API request failed with status {response.status_code}"
        try:
            data = response.json()
        except ValueError:
            return error, response.reason_phrase or None, None

        if not isinstance(data, dict):
            return error, as_text(data), None
        return (
            as_text(data.get("error")) or error,
            as_text(data.get("detail")),
            as_text(data.get("sessionId")),
        )
