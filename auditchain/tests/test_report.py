"""
Tests for report summaries.
"""

from datetime import timedelta

import pytest

from auditchain.core.errors import ValidationError
from auditchain.core.event_types import EventType
from auditchain.log.memory_store import MemoryAuditStore
from auditchain.query.engine import QueryEngine
from auditchain.report import build_summary
from auditchain.tests.helpers import make_service


def _entries():
    store = MemoryAuditStore()
    # One event every 10 hours spans several days
    service = make_service(store, step_seconds=int(timedelta(hours=10).total_seconds()))
    service.append("user-1", EventType.DOCUMENT_CREATE, "create", principal_email="u1@example.com")
    service.append("user-1", EventType.DOCUMENT_READ, "read")
    service.append("user-2", EventType.DOCUMENT_READ, "read")
    service.append("user-1", EventType.AI_SUGGESTION_GENERATED, "generate")
    return list(QueryEngine(store).iter_all(sort="asc"))


def test_summary_counts():
    summary = build_summary(_entries())

    assert summary.total_events == 4
    assert summary.unique_principals == 2
    assert summary.events_by_type[0].event_type == "DOCUMENT_READ"
    assert summary.events_by_type[0].count == 2
    assert summary.events_by_type[0].percentage == 50
    assert summary.events_by_type[0].label == "Document Viewed"
    assert summary.events_by_category["document"] == 3
    assert summary.events_by_category["ai"] == 1
    assert summary.events_by_category["auth"] == 0


def test_top_principals_carry_email():
    summary = build_summary(_entries(), top_n=1)

    assert len(summary.top_principals) == 1
    top = summary.top_principals[0]
    assert (top.principal_id, top.principal_email, top.count) == ("user-1", "u1@example.com", 3)


def test_daily_activity_zero_filled_within_window():
    summary = build_summary(_entries(), start="2024-02-29T00:00:00Z", end="2024-03-03T23:59:59Z")

    assert [(d.day, d.count) for d in summary.daily_activity] == [
        ("2024-02-29", 0),
        ("2024-03-01", 2),
        ("2024-03-02", 2),
        ("2024-03-03", 0),
    ]


def test_window_excludes_outside_entries():
    summary = build_summary(_entries(), start="2024-03-02T00:00:00Z")

    assert summary.total_events == 2
    assert [d.day for d in summary.daily_activity] == ["2024-03-02"]


def test_empty_summary():
    summary = build_summary([])

    assert summary.total_events == 0
    assert summary.events_by_type == []
    assert summary.to_dict()["top_principals"] == []


def test_bad_window_rejected():
    with pytest.raises(ValidationError):
        build_summary([], start="last tuesday")
