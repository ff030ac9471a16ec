"""StreamDecoder - NDJSON record framing for chat streams.

Design:
    Text fragments arrive with arbitrary boundaries. The decoder buffers them
    and emits one StreamEvent per complete newline-terminated record, in
    arrival order. Output does not depend on where fragments were split.

    A record that fails to parse becomes a single synthetic StreamError and
    decoding continues with the next record.

    close() flushes a trailing record that never got its newline.

Wire format (one record per line):
    {"event": "stream_started", "data": {"sessionId": "..."}}
    {"event": "token", "data": {"chunk": "..."}}
    {"event": "add_message", "data": {...}}
    {"event": "end", "data": {"flowResponse": {"reply": "...", "sessionId": "..."}}}
    {"event": "error", "data": {"message": "...", "detail": "...", "code": 500}}
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Mapping
from typing import Any

from .errors import ProtocolError
from .types import (
    AddMessage,
    End,
    StreamError,
    StreamEvent,
    StreamStarted,
    Token,
    UnknownEvent,
)
from .utils import as_text

logger = logging.getLogger(__name__)

PARSE_ERROR_MESSAGE = "Failed to parse stream record"


def event_from_record(record: Mapping[str, Any]) -> StreamEvent:
    """Build a typed event from a decoded wire record.

    Raises:
        ProtocolError: if the record has no string "event" field
    """
    name = record.get("event")
    if not isinstance(name, str) or not name:
        raise ProtocolError("Record has no 'event' field")

    data = record.get("data")
    if not isinstance(data, Mapping):
        data = {}

    if name == "stream_started":
        return StreamStarted(session_id=as_text(data.get("sessionId")))

    if name == "token":
        return Token(chunk=as_text(data.get("chunk")) or "")

    if name == "add_message":
        return AddMessage(payload=dict(data))

    if name == "end":
        flow_response = data.get("flowResponse")
        if not isinstance(flow_response, Mapping):
            flow_response = {}
        session_id = flow_response.get("sessionId") or data.get("sessionId")
        return End(
            reply=as_text(flow_response.get("reply")),
            session_id=as_text(session_id),
        )

    if name == "error":
        code = data.get("code")
        return StreamError(
            message=as_text(data.get("message")) or "Unknown stream error",
            detail=as_text(data.get("detail")),
            code=code if isinstance(code, int) and not isinstance(code, bool) else None,
        )

    return UnknownEvent(name=name, data=dict(data))


def parse_record(line: str) -> StreamEvent:
    """Parse one record line into a StreamEvent.

    Raises:
        ProtocolError: if the line is not a JSON object with an event name
    """
    try:
        record = json.loads(line)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON: {e}", raw=line) from e

    if not isinstance(record, Mapping):
        raise ProtocolError(f"Expected a JSON object, got {type(record).__name__}", raw=line)

    try:
        return event_from_record(record)
    except ProtocolError as e:
        raise ProtocolError(str(e), raw=line) from e


class StreamDecoder:
    """Incremental newline-delimited JSON decoder.

    Example:
        decoder = StreamDecoder()
        for fragment in fragments:
            for event in decoder.feed(fragment):
                handle(event)
        for event in decoder.close():
            handle(event)
    """

    def __init__(self) -> None:
        self.buffer = ""
        self.closed = False
        self.records = 0

    def feed(self, fragment: str) -> list[StreamEvent]:
        """Append a fragment and return events for every completed record."""
        if self.closed:
            raise RuntimeError("StreamDecoder is closed")

        if "\n" not in fragment:
            self.buffer += fragment
            return []

        *segments, self.buffer = (self.buffer + fragment).split("\n")
        events: list[StreamEvent] = []
        for segment in segments:
            event = self.decode_segment(segment)
            if event is not None:
                events.append(event)

        return events

    def close(self) -> list[StreamEvent]:
        """Flush the trailing partial record, if any, and stop accepting input."""
        if self.closed:
            return []
        self.closed = True

        segment, self.buffer = self.buffer, ""
        event = self.decode_segment(segment)
        return [event] if event is not None else []

    def decode_segment(self, segment: str) -> StreamEvent | None:
        """Decode one segment. Blank segments are not records."""
        line = segment.strip()
        if not line:
            return None

        self.records += 1
        try:
            event = parse_record(line)
        except ProtocolError as e:
            logger.warning("Unparseable stream record %r: %s", line[:200], e)
            return StreamError(message=PARSE_ERROR_MESSAGE, detail=str(e), raw=line)

        logger.debug("Decoded %s record", event.type)
        return event


async def decode_stream(fragments: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """Lazily decode an async sequence of text fragments.

    Events are yielded one at a time as soon as their record is complete.
    Exceptions raised by the fragment source propagate to the consumer.
    """
    decoder = StreamDecoder()
    async for fragment in fragments:
        for event in decoder.feed(fragment):
            yield event
    for event in decoder.close():
        yield event
