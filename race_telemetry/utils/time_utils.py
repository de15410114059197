"""
Timezone-aware datetime utilities.
All instants in this project are stored and processed in UTC.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from race_telemetry.normalize.coercion import coerce_string

# Sentinel start instant for races and sessions with no usable date.
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC. If naive, assume it is already UTC.

    Args:
        dt: Input datetime (aware or naive).

    Returns:
        UTC-aware datetime.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_openf1_timestamp(ts: Any) -> Optional[datetime]:
    """
    Parse an OpenF1 API timestamp string to a UTC-aware datetime.

    OpenF1 returns ISO 8601 strings like '2024-03-02T15:00:00.000000+00:00'.

    Args:
        ts: Timestamp string from OpenF1 API.

    Returns:
        UTC-aware datetime, or None if parsing fails.
    """
    text = coerce_string(ts)
    if not text:
        return None
    try:
        return to_utc(datetime.fromisoformat(text))
    except (ValueError, TypeError):
        return None


def combine_date_and_time(date_value: Any, time_value: Any = None) -> Optional[datetime]:
    """
    Combine separate date and time fields into one UTC instant.

    A missing time means midnight. When the date field already carries a
    full timestamp and no time is given, it is parsed on its own.

    Returns:
        UTC-aware datetime, or None without a parseable date.
    """
    date = coerce_string(date_value)
    if not date:
        return None

    time = coerce_string(time_value)
    if time is not None:
        combined = parse_openf1_timestamp(f"{date}T{time}")
        if combined is not None:
            return combined
    return parse_openf1_timestamp(date)
