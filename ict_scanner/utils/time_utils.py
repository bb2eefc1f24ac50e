"""UTC time helpers.

Bybit reports candle start times as epoch milliseconds; everything the
scanner stores or prints is a timezone-aware UTC datetime.
"""

import pytz
from datetime import datetime


UTC = pytz.UTC
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_utc_now() -> datetime:
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """Convert to UTC; naive datetimes are taken to be UTC already."""
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)


def from_timestamp_ms(timestamp_ms: int) -> datetime:
    """Exchange millisecond timestamp -> aware UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000, UTC)


def format_utc_time(dt: datetime) -> str:
    return to_utc(dt).strftime(DISPLAY_FORMAT)


def format_duration(seconds: int) -> str:
    """Render a duration compactly, e.g. 3725 -> "1h 2m 5s".

    Zero-valued units are omitted; zero and negative durations give "0s".
    """
    if seconds <= 0:
        return "0s"

    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)

    units = zip((hours, minutes, secs), ("h", "m", "s"))
    return " ".join(f"{value}{suffix}" for value, suffix in units if value) or "0s"
