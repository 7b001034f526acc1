"""
Event capture: validate, resolve tail, build, hash, conditionally commit.
"""

import random
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

from ..chain.resolver import ChainResolver
from ..core.canonical import canonicalize
from ..core.clock import SystemClock, next_timestamp
from ..core.entry import AuditLogEntry, ClientContext
from ..core.errors import (
    ChainContentionError,
    PersistenceFailure,
    StoreError,
    ValidationError,
)
from ..core.event_types import EventType, parse_event_type
from ..core.ids import new_entry_id
from ..log.integrity import GENESIS, seal
from ..log.store import AuditStore
from ..logging_config import get_logger
from ..metrics import track_append, track_append_duration, track_conflict

SYSTEM_PRINCIPAL = "system"


class EventCaptureService:
    """
    Appends entries to per-principal hash chains.

    Each attempt re-reads the tail from storage, links the new entry to it
    and writes with put_entry_if_tail_unchanged. A conflict means another
    writer committed first; the attempt is rebuilt on the new tail.

    The entry id is fixed for the whole call. A write that raised but did
    commit is found again either at the tail or, when other writers have
    appended since, by the store's duplicate-id check on the next write.
    """

    def __init__(
        self,
        store: AuditStore,
        clock=None,
        max_attempts: int = 5,
        persist_retries: int = 3,
        backoff_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.store = store
        self.resolver = ChainResolver(store)
        self.clock = clock or SystemClock()
        self.max_attempts = max_attempts
        self.persist_retries = persist_retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def append(
        self,
        principal_id: Optional[str],
        event_type: Union[EventType, str, None],
        action: Optional[str],
        principal_email: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        client_context: Optional[ClientContext] = None,
    ) -> AuditLogEntry:
        """
        Record one audit event and return the persisted entry.

        Raises:
            ValidationError: Missing eventType/action, unknown eventType, bad metadata
            ChainResolutionFailure: Tail read failed
            ChainContentionError: Conflict retries exhausted
            PersistenceFailure: Storage kept failing on write
        """
        resolved_type = parse_event_type(event_type)
        if action is None or not str(action).strip():
            raise ValidationError("action is required")
        principal = principal_id.strip() if principal_id and principal_id.strip() else SYSTEM_PRINCIPAL
        meta = _validate_metadata(metadata)
        if client_context is not None and client_context.is_empty():
            client_context = None

        log = get_logger(__name__, trace_id=principal)
        entry_id = new_entry_id()
        storage_failures = 0
        attempt = 0

        with track_append_duration():
            while True:
                tail = self.resolver.tail(principal)
                if tail is not None and tail.id == entry_id:
                    # An earlier write reported a failure but did commit.
                    log.info(f"Recovered committed entry {entry_id} after storage error")
                    track_append(resolved_type.value, "committed")
                    return tail

                previous_hash = tail.hash if tail is not None else GENESIS
                entry = seal(
                    AuditLogEntry(
                        id=entry_id,
                        timestamp=next_timestamp(
                            self.clock.now(), tail.timestamp if tail is not None else None
                        ),
                        principal_id=principal,
                        principal_email=principal_email,
                        event_type=resolved_type.value,
                        action=str(action).strip(),
                        resource_type=resource_type,
                        resource_id=resource_id,
                        metadata=meta,
                        client_context=client_context,
                        previous_hash=previous_hash,
                    )
                )

                try:
                    result = self.store.put_entry_if_tail_unchanged(entry, previous_hash)
                except (StoreError, OSError) as e:
                    storage_failures += 1
                    if storage_failures > self.persist_retries:
                        track_append(resolved_type.value, "persistence_failure")
                        log.error(f"Audit write failed after {storage_failures} attempts: {e}")
                        raise PersistenceFailure(
                            f"could not persist audit entry for '{principal}': {e}"
                        ) from e
                    delay = self.backoff_seconds * (2 ** (storage_failures - 1))
                    log.warning(f"Audit write failed ({e}); retrying in {delay:.3f}s")
                    self._sleep(delay)
                    continue

                if result.duplicate:
                    log.info(f"Recovered committed entry {entry_id} after storage error")
                    track_append(resolved_type.value, "committed")
                    return result.entry

                if result.committed:
                    track_append(resolved_type.value, "committed")
                    log.debug(
                        f"Appended {resolved_type.value} entry {entry.id}",
                        extra={"previous_hash": previous_hash},
                    )
                    return entry

                attempt += 1
                track_conflict()
                if attempt >= self.max_attempts:
                    track_append(resolved_type.value, "contention")
                    log.error(f"Chain contention: gave up after {attempt} conflicting writes")
                    raise ChainContentionError(
                        f"chain for '{principal}' kept moving; {attempt} attempts exhausted"
                    )
                log.debug(
                    f"Tail moved ({previous_hash[:12]} -> "
                    f"{(result.observed_previous_hash or '')[:12]}); retrying"
                )
                self._sleep(random.uniform(0, self.backoff_seconds))


def _validate_metadata(metadata: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if metadata is None:
        return None
    if not isinstance(metadata, Mapping):
        raise ValidationError("metadata must be a mapping")
    # Raises CanonicalizationError (a ValidationError) for unhashable content
    return canonicalize(dict(metadata))
