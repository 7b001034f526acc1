"""
Tests for caller-context extraction and the taxonomy recorders.
"""

import pytest

from auditchain.capture.context import CallerContext, extract_client_context, extract_principal
from auditchain.core.entry import ClientContext
from auditchain.core.errors import ValidationError
from auditchain.core.event_types import EventCategory, EventType, event_types_in
from auditchain.capture.recorders import AuditRecorder
from auditchain.log.memory_store import MemoryAuditStore
from auditchain.tests.helpers import make_service


def test_principal_from_sub_with_email_claim():
    identity = {"sub": "abc-123", "username": "alice", "claims": {"email": "a@example.com"}}

    assert extract_principal(identity) == ("abc-123", "a@example.com")


def test_principal_fallback_order():
    assert extract_principal({"username": "bob"}, {"userId": "u-9"}) == ("bob", None)
    assert extract_principal(None, {"userId": "u-9"}) == ("u-9", None)
    assert extract_principal({}, {}) == ("system", None)
    assert extract_principal(None) == ("system", None)


def test_client_context_uses_first_forwarded_hop():
    ctx = extract_client_context(
        {
            "X-Forwarded-For": "203.0.113.7, 10.0.0.2",
            "X-Real-IP": "10.0.0.9",
            "User-Agent": "Mozilla/5.0",
            "X-Session-Id": "sess-1",
        }
    )

    assert ctx == ClientContext(ip_address="203.0.113.7", user_agent="Mozilla/5.0", session_id="sess-1")


def test_client_context_falls_back_to_real_ip():
    ctx = extract_client_context({"x-real-ip": "10.0.0.9"})

    assert ctx.ip_address == "10.0.0.9"
    assert ctx.user_agent is None


def test_client_context_absent_without_headers():
    assert extract_client_context(None) is None
    assert extract_client_context({"accept": "*/*"}) is None


def test_recorder_writes_caller_fields():
    store = MemoryAuditStore()
    caller = CallerContext.from_request(
        identity={"sub": "user-1", "claims": {"email": "u1@example.com"}},
        headers={"user-agent": "pytest"},
    )
    recorder = AuditRecorder(make_service(store), caller)

    entry = recorder.document_shared("doc-1", "link", shared_with="user-2")

    assert entry.principal_id == "user-1"
    assert entry.principal_email == "u1@example.com"
    assert entry.client_context.user_agent == "pytest"
    assert entry.event_type == "DOCUMENT_SHARE"
    assert entry.resource_id == "doc-1"
    assert entry.metadata == {"shareType": "link", "sharedWith": "user-2"}


def test_recorders_chain_one_principal():
    store = MemoryAuditStore()
    recorder = AuditRecorder(make_service(store), CallerContext(principal_id="user-1"))

    entries = [
        recorder.login("user-1", "u1@example.com"),
        recorder.document_created("doc-1", {"title": "Plan"}),
        recorder.suggestions_generated("doc-1", 3, {"model": "m1"}),
        recorder.suggestion_accepted("doc-1", "sug-1", "grammar"),
        recorder.snapshot_created("doc-1", "snap-1", is_auto_save=True),
        recorder.template_deleted("tpl-1"),
        recorder.admin_accessed("users"),
        recorder.logout("user-1"),
    ]

    for prev, cur in zip(entries, entries[1:]):
        assert cur.previous_hash == prev.hash
    assert entries[2].metadata == {"suggestionCount": 3, "model": "m1"}
    assert entries[6].resource_id is None


def test_feedback_must_be_up_or_down():
    recorder = AuditRecorder(make_service(MemoryAuditStore()), CallerContext(principal_id="user-1"))

    assert recorder.feedback_submitted("sug-1", "up").metadata == {"feedback": "up"}
    with pytest.raises(ValidationError):
        recorder.feedback_submitted("sug-1", "sideways")


def test_taxonomy_categories_and_labels():
    assert len(EventType) == 21
    assert EventType.DOCUMENT_READ.label == "Document Viewed"
    assert EventType.AI_FEEDBACK_SUBMITTED.category == EventCategory.AI
    assert [t.value for t in event_types_in(EventCategory.SNAPSHOT)] == ["SNAPSHOT_CREATE", "SNAPSHOT_RESTORE"]
    assert sum(len(event_types_in(c)) for c in EventCategory) == 21
