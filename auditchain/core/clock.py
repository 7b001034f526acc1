"""
Clock and timestamp helpers.

Timestamps are ISO-8601 UTC strings with fixed microsecond precision, so
lexicographic order equals chronological order.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

ONE_MICROSECOND = timedelta(microseconds=1)


def format_timestamp(dt: datetime) -> str:
    """Render a datetime as a fixed-width UTC timestamp string."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing "Z" and offsets; naive values are taken as UTC.

    Raises:
        ValueError: If value is not ISO-8601
    """
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_timestamp(value: Union[str, datetime]) -> str:
    """Normalize a datetime or ISO string into the fixed storage format."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    return format_timestamp(parse_timestamp(value))


def next_timestamp(now: datetime, tail_timestamp: Optional[str]) -> str:
    """
    Timestamp for a new chain entry.

    Strictly after the tail so commit order and timestamp order agree even
    when the wall clock stalls or steps backwards.
    """
    if tail_timestamp is not None:
        floor = parse_timestamp(tail_timestamp) + ONE_MICROSECOND
        if now.astimezone(timezone.utc) < floor:
            return format_timestamp(floor)
    return format_timestamp(now)


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock advanced by hand.

    Each now() call returns the current instant and then advances by step,
    so tests get distinct, predictable timestamps.
    """

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = step
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            value = self.current
            self.current = self.current + self.step
            return value

    def set(self, dt: datetime) -> None:
        with self._lock:
            self.current = dt
