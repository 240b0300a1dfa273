"""Timestamp, date and text helpers for Slack payloads."""

import re
from datetime import datetime, timedelta, timezone
from typing import Any

USER_MENTION_RE = re.compile(r"<@([UW][A-Z0-9]+)(?:\|[^>]*)?>")


def ts_to_float(slack_ts: Any) -> float:
    """Slack timestamp ("1234567890.123456", int or float) to epoch seconds; 0.0 if unparseable."""
    try:
        return float(slack_ts)
    except (TypeError, ValueError):
        return 0.0


def timestamp_to_iso(slack_ts: Any) -> str:
    """Convert Slack timestamp to ISO 8601 format.

    Args:
        slack_ts: Slack timestamp in format "1234567890.123456", or epoch seconds

    Returns:
        ISO 8601 formatted timestamp

    Raises:
        ValueError: if the timestamp cannot be parsed
    """
    try:
        seconds = float(slack_ts)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Failed to convert timestamp: {slack_ts!r}") from e
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


def format_timestamp(slack_ts: Any, date_format: str = "ISO") -> str:
    """Render a Slack timestamp as ISO, unix seconds, or with a strftime pattern."""
    if date_format.upper() == "ISO":
        return timestamp_to_iso(slack_ts)
    if date_format.lower() == "unix":
        return str(int(ts_to_float(slack_ts)))
    return datetime.fromtimestamp(ts_to_float(slack_ts), tz=timezone.utc).strftime(date_format)


def date_to_timestamp(date_str: str, end_of_day: bool = False) -> str:
    """YYYY-MM-DD to a Slack timestamp at 00:00:00 UTC (or 23:59:59 with ``end_of_day``)."""
    day = datetime.strptime(date_str, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    if end_of_day:
        day = day + timedelta(days=1) - timedelta(seconds=1)
    return str(int(day.timestamp()))


def resolve_time_range(
    after_date: str | None = None,
    before_date: str | None = None,
    oldest_ts: str | None = None,
    latest_ts: str | None = None,
) -> tuple[str | None, str | None]:
    """Collapse the date-or-timestamp window into Slack ``oldest``/``latest``."""
    oldest = oldest_ts or (date_to_timestamp(after_date) if after_date else None)
    latest = latest_ts or (date_to_timestamp(before_date, end_of_day=True) if before_date else None)
    return oldest, latest


def days_ago_timestamp(days: float, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return str(int((now - timedelta(days=days)).timestamp()))


def hours_ago_timestamp(hours: float, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return str(int((now - timedelta(hours=hours)).timestamp()))


def extract_mentions(text: str) -> list[str]:
    """User ids mentioned as ``<@U123>`` or ``<@U123|name>``."""
    return USER_MENTION_RE.findall(text or "")


def process_text(text: str) -> str:
    """Flatten Slack markup for plain-text output.

    ``<url|label>`` becomes ``label (url)``, bare ``<url>`` loses its brackets,
    and runs of spaces or tabs collapse to one.
    """
    text = re.sub(r"<(https?://[^>|]+)\|([^>]+)>", r"\2 (\1)", text or "")
    text = re.sub(r"<(https?://[^>]+)>", r"\1", text)
    text = re.sub(r"[ \t]+", " ", text)
    return text.strip()


def truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[: max(length - 3, 0)].rstrip() + "..."
