"""
In-process audit store.

Keeps every entry in memory behind a single lock. Suitable for tests and
single-process embedding; durable deployments use FileAuditStore or
DynamoDBAuditStore.
"""

import threading
from typing import Any, Dict, List, Optional

from ..core.entry import AuditLogEntry
from .integrity import GENESIS
from .store import AuditStore, PutResult, ScanIndex, ScanPage, SortOrder, scan_entries


class MemoryAuditStore(AuditStore):
    """
    Lock-guarded in-memory store.

    Chains are kept per principal in commit order; the id check, the tail
    check and the append happen under the same lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._chains: Dict[str, List[AuditLogEntry]] = {}
        self._entries: List[AuditLogEntry] = []
        self._by_id: Dict[str, AuditLogEntry] = {}

    def get_latest_by_principal(self, principal_id: str) -> Optional[AuditLogEntry]:
        with self._lock:
            chain = self._chains.get(principal_id)
            return chain[-1] if chain else None

    def put_entry_if_tail_unchanged(
        self, entry: AuditLogEntry, expected_previous_hash: Optional[str]
    ) -> PutResult:
        with self._lock:
            chain = self._chains.setdefault(entry.principal_id, [])
            observed = chain[-1].hash if chain else GENESIS
            stored = self._by_id.get(entry.id)
            if stored is not None:
                return PutResult(
                    entry=stored,
                    committed=False,
                    conflict=False,
                    observed_previous_hash=observed,
                    duplicate=True,
                )
            if expected_previous_hash is not None and expected_previous_hash != observed:
                return PutResult(
                    entry=entry,
                    committed=False,
                    conflict=True,
                    observed_previous_hash=observed,
                )
            chain.append(entry)
            self._entries.append(entry)
            self._by_id[entry.id] = entry
            return PutResult(
                entry=entry,
                committed=True,
                conflict=False,
                observed_previous_hash=observed,
            )

    def scan(
        self,
        index: ScanIndex,
        key: Optional[str] = None,
        sort: SortOrder = SortOrder.DESC,
        limit: int = 50,
        after: Optional[Dict[str, Any]] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> ScanPage:
        with self._lock:
            snapshot = list(self._entries)
        return scan_entries(snapshot, index, key, sort, limit, after, start_time, end_time)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
