"""
Utility functions for the stat fetcher.

Common helpers for time handling and text cleanup.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def now_utc() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_iso(timestamp: str | None) -> datetime | None:
    """
    Parse an ISO8601 timestamp string from the GitLab API.

    Args:
        timestamp: Timestamp such as "2024-03-01T10:15:00.000Z", or None

    Returns:
        Aware datetime, or None when the value is missing
    """
    if not timestamp:
        return None
    parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_rfc3339(value: datetime | None) -> str:
    """
    Format a datetime as RFC3339 with second precision.

    UTC values end with "Z", other offsets keep their "+HH:MM" suffix.
    Missing values become an empty string.
    """
    if value is None:
        return ""
    text = value.replace(microsecond=0).isoformat()
    if value.utcoffset() == timedelta(0):
        text = text[: -len("+00:00")] + "Z"
    return text


def sanitize_text(text: str | None) -> str:
    """Replace every newline and carriage return with a single space."""
    if not text:
        return ""
    return text.replace("\n", " ").replace("\r", " ")


def format_duration(seconds: float) -> str:
    """Format elapsed seconds for log output (e.g. "1m 5.2s")."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m {secs:.1f}s"
