"""Small helpers: loose text coercion and timestamps."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def as_text(value: Any) -> str | None:
    """Coerce a loosely-typed wire value to str.

    None stays None; dicts and lists become JSON.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def normalize_timestamp(value: str | None) -> str | None:
    """Normalize a Langflow timestamp to ISO 8601.

    Langflow stores '2025-05-19 13:33:46 UTC'; this becomes
    '2025-05-19T13:33:46Z'. Values already in ISO form pass through.
    """
    if not value:
        return None
    return value.replace(" ", "T", 1).replace(" UTC", "Z")


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO 8601 string (trailing 'Z' allowed). None if invalid."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_datetime(value: str | None, fmt: str = "%H:%M") -> str:
    """Format an ISO timestamp for display.

    Args:
        value: ISO 8601 timestamp; None means now
        fmt: strftime format

    Returns:
        Formatted local time, or the original string if it cannot be parsed
    """
    if value is None:
        return datetime.now().strftime(fmt)

    parsed = parse_timestamp(value)
    if parsed is None:
        return value
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.strftime(fmt)
