"""Small text helpers shared by tool output and CLI summaries."""

from __future__ import annotations

from datetime import UTC, datetime


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return grammatically correct singular/plural form.

    Examples:
        pluralize(1, "class", "classes") -> "1 class"
        pluralize(3, "archive") -> "3 archives"
    """
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


def truncate_query(query: str, max_len: int = 20) -> str:
    """Truncate a search query for display.

    Examples:
        "org.apache.commons.lang3" -> "org.apache.common..."
        "short" -> "short"
    """
    if len(query) <= max_len:
        return query
    return query[: max_len - 3] + "..."


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as UTC ISO-8601 with second precision."""
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
