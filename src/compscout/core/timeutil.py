"""Timestamp helpers shared by the wire models and stages."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(value: str) -> datetime:
    """
    Parse an ISO-8601 instant.

    A trailing ``Z`` is accepted and naive values are taken as UTC.

    Raises:
        ValueError: If the value is not a valid ISO-8601 datetime
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
