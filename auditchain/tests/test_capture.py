"""
Tests for event capture.

Covers validation, chain linkage, tail resolution failures, storage retries
and contention handling.
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from auditchain.capture.service import SYSTEM_PRINCIPAL, EventCaptureService
from auditchain.core.clock import ManualClock, next_timestamp, parse_timestamp
from auditchain.core.entry import AuditLogEntry, ClientContext
from auditchain.core.errors import (
    ChainContentionError,
    ChainResolutionFailure,
    PersistenceFailure,
    StoreError,
    ValidationError,
)
from auditchain.core.event_types import EventType
from auditchain.core.ids import new_entry_id
from auditchain.log.integrity import GENESIS, hash_entry, seal
from auditchain.log.memory_store import MemoryAuditStore
from auditchain.log.store import PutResult, ScanIndex, SortOrder
from auditchain.tests.helpers import T0, make_service
from auditchain.verify.chain import ChainVerifier, Ok


class UntouchableStore(MemoryAuditStore):
    """Fails the test if storage is reached."""

    def get_latest_by_principal(self, principal_id):
        raise AssertionError("storage must not be read")

    def put_entry_if_tail_unchanged(self, entry, expected_previous_hash):
        raise AssertionError("storage must not be written")


class UnreadableStore(MemoryAuditStore):
    def get_latest_by_principal(self, principal_id):
        raise StoreError("connection reset")


class FlakyWriteStore(MemoryAuditStore):
    """Raises StoreError on the first `failures` writes."""

    def __init__(self, failures, commit_before_failing=False):
        super().__init__()
        self.failures = failures
        self.commit_before_failing = commit_before_failing
        self.write_calls = 0

    def put_entry_if_tail_unchanged(self, entry, expected_previous_hash):
        self.write_calls += 1
        if self.write_calls <= self.failures:
            if self.commit_before_failing:
                super().put_entry_if_tail_unchanged(entry, expected_previous_hash)
            raise StoreError("write timed out")
        return super().put_entry_if_tail_unchanged(entry, expected_previous_hash)


class RacingStore(MemoryAuditStore):
    """Commits a competing entry just before each of our first `races` writes."""

    def __init__(self, races):
        super().__init__()
        self.races = races
        self.competing = []

    def put_entry_if_tail_unchanged(self, entry, expected_previous_hash):
        if self.races > 0:
            self.races -= 1
            competing = seal(
                AuditLogEntry(
                    id=new_entry_id(),
                    timestamp=entry.timestamp,
                    principal_id=entry.principal_id,
                    event_type=EventType.DOCUMENT_READ.value,
                    action="competing_read",
                    previous_hash=self.tail_hash(entry.principal_id),
                )
            )
            super().put_entry_if_tail_unchanged(competing, None)
            self.competing.append(competing)
        return super().put_entry_if_tail_unchanged(entry, expected_previous_hash)


class BuriedWriteStore(MemoryAuditStore):
    """
    Commits our first write, lets another writer append on top of it, then
    reports the write as failed.
    """

    def __init__(self):
        super().__init__()
        self.write_calls = 0
        self.competing = None

    def put_entry_if_tail_unchanged(self, entry, expected_previous_hash):
        self.write_calls += 1
        if self.write_calls == 1:
            super().put_entry_if_tail_unchanged(entry, expected_previous_hash)
            self.competing = seal(
                AuditLogEntry(
                    id=new_entry_id(),
                    timestamp=next_timestamp(parse_timestamp(entry.timestamp), entry.timestamp),
                    principal_id=entry.principal_id,
                    event_type=EventType.DOCUMENT_READ.value,
                    action="competing_read",
                    previous_hash=entry.hash,
                )
            )
            super().put_entry_if_tail_unchanged(self.competing, entry.hash)
            raise StoreError("write timed out")
        return super().put_entry_if_tail_unchanged(entry, expected_previous_hash)


class AlwaysConflictStore(MemoryAuditStore):
    def __init__(self):
        super().__init__()
        self.write_calls = 0

    def put_entry_if_tail_unchanged(self, entry, expected_previous_hash):
        self.write_calls += 1
        return PutResult(entry=entry, committed=False, conflict=True, observed_previous_hash="f" * 64)


def test_end_to_end_scenario():
    """Three events for one user form a linked chain with increasing timestamps."""
    store = MemoryAuditStore()
    service = make_service(store)

    e1 = service.append(
        "user-1",
        EventType.DOCUMENT_CREATE,
        "create_document",
        principal_email="u1@example.com",
        resource_type="Document",
        resource_id="doc-1",
        metadata={"title": "Plan"},
        client_context=ClientContext(ip_address="10.0.0.1", user_agent="pytest"),
    )
    e2 = service.append("user-1", EventType.DOCUMENT_READ, "read_document", resource_id="doc-1")
    e3 = service.append("user-1", EventType.DOCUMENT_UPDATE, "update_document", resource_id="doc-1")

    assert e1.previous_hash == GENESIS
    assert e2.previous_hash == e1.hash
    assert e3.previous_hash == e2.hash
    assert e1.timestamp < e2.timestamp < e3.timestamp
    assert len({e1.id, e2.id, e3.id}) == 3
    assert all(e.hash == hash_entry(e) for e in (e1, e2, e3))
    assert store.get_latest_by_principal("user-1") == e3
    assert e1.client_context.ip_address == "10.0.0.1"
    assert e1.client_context.session_id is None


def test_first_entry_links_to_genesis():
    service = make_service(MemoryAuditStore())

    entry = service.append("user-9", EventType.AUTH_LOGIN, "login")

    assert entry.previous_hash == GENESIS
    assert entry.timestamp == "2024-03-01T12:00:00.000000Z"


@pytest.mark.parametrize(
    "event_type,action",
    [
        (None, "login"),
        ("", "login"),
        ("NOT_A_TYPE", "login"),
        (EventType.AUTH_LOGIN, None),
        (EventType.AUTH_LOGIN, "   "),
    ],
)
def test_validation_rejects_before_storage(event_type, action):
    """Malformed requests fail with ValidationError and never reach storage."""
    service = make_service(UntouchableStore())

    with pytest.raises(ValidationError):
        service.append("user-1", event_type, action)


def test_unhashable_metadata_rejected():
    service = make_service(UntouchableStore())

    with pytest.raises(ValidationError):
        service.append("user-1", EventType.AUTH_LOGIN, "login", metadata={"ratio": float("nan")})
    with pytest.raises(ValidationError):
        service.append("user-1", EventType.AUTH_LOGIN, "login", metadata=["not", "a", "mapping"])


def test_event_type_accepts_wire_string():
    service = make_service(MemoryAuditStore())

    entry = service.append("user-1", "DOCUMENT_EXPORT", "export_document")

    assert entry.event_type == "DOCUMENT_EXPORT"


@pytest.mark.parametrize("principal", [None, "", "   "])
def test_missing_principal_recorded_as_system(principal):
    service = make_service(MemoryAuditStore())

    entry = service.append(principal, EventType.ADMIN_ACCESS, "open_admin")

    assert entry.principal_id == SYSTEM_PRINCIPAL


def test_empty_client_context_stored_as_absent():
    service = make_service(MemoryAuditStore())

    entry = service.append("user-1", EventType.AUTH_LOGIN, "login", client_context=ClientContext())

    assert entry.client_context is None


def test_metadata_stored_in_canonical_form():
    """Stored metadata is the same canonical value that was hashed."""
    service = make_service(MemoryAuditStore())

    entry = service.append("user-1", EventType.AUTH_LOGIN, "login", metadata={"b": 2.0, "a": (1, 2)})

    assert entry.metadata == {"a": [1, 2], "b": 2}
    assert isinstance(entry.metadata["b"], int)


def test_timestamps_strictly_increase_when_clock_steps_back():
    """A backwards clock must not produce out-of-order chain timestamps."""
    service = EventCaptureService(
        MemoryAuditStore(),
        clock=ManualClock(start=T0, step=timedelta(seconds=-5)),
        sleep=lambda _s: None,
    )

    entries = [service.append("user-1", EventType.DOCUMENT_READ, "read") for _ in range(4)]

    stamps = [parse_timestamp(e.timestamp) for e in entries]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 4
    assert stamps[1] - stamps[0] == timedelta(microseconds=1)


def test_tail_read_failure_is_not_genesis():
    """An unreadable tail raises instead of starting a new chain at GENESIS."""
    store = UnreadableStore()
    service = make_service(store)

    with pytest.raises(ChainResolutionFailure) as exc_info:
        service.append("user-1", EventType.AUTH_LOGIN, "login")

    assert exc_info.value.retryable
    assert len(store) == 0


def test_transient_write_failures_are_retried():
    store = FlakyWriteStore(failures=2)
    delays = []
    service = make_service(store, persist_retries=3, backoff_seconds=0.1, sleep=delays.append)

    entry = service.append("user-1", EventType.AUTH_LOGIN, "login")

    assert store.write_calls == 3
    assert store.get_latest_by_principal("user-1") == entry
    assert delays == [pytest.approx(0.1), pytest.approx(0.2)]


def test_persistent_write_failure_raises():
    store = FlakyWriteStore(failures=10)
    service = make_service(store, persist_retries=3)

    with pytest.raises(PersistenceFailure):
        service.append("user-1", EventType.AUTH_LOGIN, "login")

    assert store.write_calls == 4
    assert len(store) == 0


def test_write_that_committed_despite_error_is_not_duplicated():
    """A failed-looking write that actually committed is recognised on retry."""
    store = FlakyWriteStore(failures=1, commit_before_failing=True)
    service = make_service(store)

    entry = service.append("user-1", EventType.AUTH_LOGIN, "login")

    assert len(store) == 1
    assert store.get_latest_by_principal("user-1") == entry
    assert store.write_calls == 1


def test_committed_write_buried_by_another_writer_is_not_duplicated():
    """
    A failed-looking write that committed and was then built upon is not
    written a second time under the same id.
    """
    store = BuriedWriteStore()
    service = make_service(store)

    entry = service.append("user-1", EventType.AUTH_LOGIN, "login")

    chain = store.scan(ScanIndex.PRINCIPAL, key="user-1", sort=SortOrder.ASC).items
    assert [e.id for e in chain] == [entry.id, store.competing.id]
    assert store.write_calls == 2
    assert entry.previous_hash == GENESIS
    assert store.get_latest_by_principal("user-1") == store.competing
    assert ChainVerifier(store).verify("user-1") == Ok(count=2, principal_id="user-1")


def test_store_rejects_second_write_of_same_id():
    store = MemoryAuditStore()
    service = make_service(store)
    first = service.append("user-1", EventType.AUTH_LOGIN, "login")
    service.append("user-1", EventType.AUTH_LOGOUT, "logout")

    again = replace(first, previous_hash=store.tail_hash("user-1"))
    result = store.put_entry_if_tail_unchanged(again, store.tail_hash("user-1"))

    assert result.duplicate
    assert not result.committed
    assert result.entry == first
    assert len(store) == 2


def test_conflict_rebuilds_entry_on_new_tail():
    """When another writer commits first, the entry links to the new tail."""
    store = RacingStore(races=2)
    service = make_service(store)

    entry = service.append("user-1", EventType.DOCUMENT_UPDATE, "update")

    assert len(store) == 3
    assert store.competing[1].previous_hash == store.competing[0].hash
    assert entry.previous_hash == store.competing[-1].hash
    assert entry.timestamp > store.competing[-1].timestamp
    assert store.get_latest_by_principal("user-1") == entry


def test_contention_exhaustion_raises():
    store = AlwaysConflictStore()
    service = make_service(store, max_attempts=4)

    with pytest.raises(ChainContentionError) as exc_info:
        service.append("user-1", EventType.AUTH_LOGIN, "login")

    assert exc_info.value.retryable
    assert store.write_calls == 4


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        EventCaptureService(MemoryAuditStore(), max_attempts=0)
