"""Shared utility functions for services and blueprints.

is_blank:        None / empty / whitespace-only check used by every validator
parse_datetime:  ISO string → aware datetime (raises ValueError on bad input)
utcnow:          default clock
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def parse_datetime(value) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC.

    Raises ValueError on bad input so callers can report the field.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a date: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
