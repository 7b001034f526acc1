"""
Summary statistics over audit entries.
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from .core.clock import normalize_timestamp, parse_timestamp
from .core.entry import AuditLogEntry
from .core.errors import ValidationError
from .core.event_types import EventCategory, EventType


@dataclass(frozen=True)
class EventTypeStat:
    event_type: str
    label: str
    count: int
    percentage: int


@dataclass(frozen=True)
class PrincipalStat:
    principal_id: str
    principal_email: Optional[str]
    count: int


@dataclass(frozen=True)
class DailyStat:
    day: str
    count: int


@dataclass(frozen=True)
class ReportSummary:
    total_events: int
    unique_principals: int
    events_by_type: List[EventTypeStat] = field(default_factory=list)
    events_by_category: Dict[str, int] = field(default_factory=dict)
    top_principals: List[PrincipalStat] = field(default_factory=list)
    daily_activity: List[DailyStat] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_summary(
    entries: Iterable[AuditLogEntry],
    start: Union[str, None] = None,
    end: Union[str, None] = None,
    top_n: int = 10,
) -> ReportSummary:
    """
    Aggregate entries whose timestamp falls within [start, end].

    Daily activity lists every UTC day in the window (zero-filled) when both
    bounds are given, otherwise only the days that have events.
    """
    lo = _bound(start, "start")
    hi = _bound(end, "end")
    selected = [
        e
        for e in entries
        if (lo is None or e.timestamp >= lo) and (hi is None or e.timestamp <= hi)
    ]
    total = len(selected)

    type_counts = Counter(e.event_type for e in selected)
    events_by_type = [
        EventTypeStat(
            event_type=event_type,
            label=_label(event_type),
            count=count,
            percentage=round(count * 100 / total) if total else 0,
        )
        for event_type, count in sorted(type_counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]

    category_counts: Dict[str, int] = {c.value: 0 for c in EventCategory}
    for event_type, count in type_counts.items():
        category = _category(event_type)
        if category is not None:
            category_counts[category] += count

    principal_counts = Counter(e.principal_id for e in selected)
    emails: Dict[str, Optional[str]] = {}
    for e in selected:
        if e.principal_email and e.principal_id not in emails:
            emails[e.principal_id] = e.principal_email
    top_principals = [
        PrincipalStat(principal_id=pid, principal_email=emails.get(pid), count=count)
        for pid, count in sorted(principal_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:top_n]
    ]

    day_counts = Counter(e.timestamp[:10] for e in selected)
    if lo is not None and hi is not None:
        days = _days_between(parse_timestamp(lo).date(), parse_timestamp(hi).date())
    else:
        days = sorted(day_counts)
    daily_activity = [DailyStat(day=d, count=day_counts.get(d, 0)) for d in days]

    return ReportSummary(
        total_events=total,
        unique_principals=len(principal_counts),
        events_by_type=events_by_type,
        events_by_category=category_counts,
        top_principals=top_principals,
        daily_activity=daily_activity,
    )


def _bound(value: Optional[str], name: str) -> Optional[str]:
    if not value:
        return None
    try:
        return normalize_timestamp(value)
    except (TypeError, ValueError):
        raise ValidationError(f"report {name} is not an ISO-8601 timestamp: {value!r}") from None


def _days_between(first: date, last: date) -> List[str]:
    days = []
    current = first
    while current <= last:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def _label(event_type: str) -> str:
    try:
        return EventType(event_type).label
    except ValueError:
        return event_type


def _category(event_type: str) -> Optional[str]:
    try:
        return EventType(event_type).category.value
    except ValueError:
        return None
