"""
File-based audit store using append-only JSONL format.

Each line is one entry in its wire form (camelCase keys, including hash and
previousHash).
"""

import json
import os
import threading
from typing import Any, Dict, Iterator, List, Optional

from ..core.canonical import canonical_json_str
from ..core.entry import AuditLogEntry
from ..core.errors import StoreError
from .integrity import GENESIS
from .store import AuditStore, PutResult, ScanIndex, ScanPage, SortOrder, scan_entries

try:
    import fcntl
except ImportError:  # Windows or unsupported platform
    fcntl = None


class FileAuditStore(AuditStore):
    """
    File-based append-only audit store.

    Storage format: JSONL (newline-delimited JSON)
    Each line: {"id": "...", "principalId": "...", "previousHash": "...", "hash": "...", ...}

    Guarantees:
    - Append-only (no mutations)
    - Fsync after each append (durability)
    - Id check, tail check and append under one exclusive flock, so writers in
      other processes sharing the file cannot fork a chain or store an id twice
    """

    def __init__(self, path: str) -> None:
        """
        Initialize file audit store.

        Args:
            path: Path to JSONL file
        """
        self.path = path
        self._local_lock = threading.Lock()

        # Ensure directory exists
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

        # Create empty file if not exists
        if not os.path.exists(path):
            with open(path, "wb") as f:
                f.write(b"")

    def _iter_records(self, f) -> Iterator[Dict[str, Any]]:
        f.seek(0)
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                yield json.loads(line)
            except ValueError as ex:
                raise StoreError(f"{self.path}:{lineno}: unreadable record") from ex

    def _entry(self, rec: Dict[str, Any]) -> AuditLogEntry:
        try:
            return AuditLogEntry.from_dict(rec)
        except (KeyError, TypeError, AttributeError) as ex:
            raise StoreError(f"{self.path}: malformed entry record") from ex

    def _latest_for(self, f, principal_id: str) -> Optional[AuditLogEntry]:
        latest = None
        for rec in self._iter_records(f):
            if rec.get("principalId") == principal_id:
                latest = rec
        return self._entry(latest) if latest is not None else None

    def get_latest_by_principal(self, principal_id: str) -> Optional[AuditLogEntry]:
        try:
            with open(self.path, "rb") as f:
                return self._latest_for(f, principal_id)
        except OSError as ex:
            raise StoreError(str(ex)) from ex

    def put_entry_if_tail_unchanged(
        self, entry: AuditLogEntry, expected_previous_hash: Optional[str]
    ) -> PutResult:
        """
        Append entry if the principal's tail still matches.

        Raises:
            StoreError: If append fails
        """
        try:
            with self._local_lock, open(self.path, "a+b") as f:
                if fcntl:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    return self._append_locked(f, entry, expected_previous_hash)
                finally:
                    if fcntl:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as ex:
            raise StoreError(str(ex)) from ex

    def _append_locked(
        self, f, entry: AuditLogEntry, expected_previous_hash: Optional[str]
    ) -> PutResult:
        latest = None
        stored = None
        for rec in self._iter_records(f):
            if rec.get("principalId") == entry.principal_id:
                latest = rec
            if rec.get("id") == entry.id:
                stored = rec
        observed = self._entry(latest).hash if latest is not None else GENESIS

        if stored is not None:
            return PutResult(
                entry=self._entry(stored),
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

        line = canonical_json_str(entry.to_dict()) + "\n"

        f.seek(0, os.SEEK_END)
        f.write(line.encode("utf-8"))
        f.flush()
        os.fsync(f.fileno())

        return PutResult(
            entry=entry,
            committed=True,
            conflict=False,
            observed_previous_hash=observed,
        )

    def read_all(self) -> List[AuditLogEntry]:
        """Read every entry in file order."""
        try:
            with open(self.path, "rb") as f:
                return [self._entry(rec) for rec in self._iter_records(f)]
        except OSError as ex:
            raise StoreError(str(ex)) from ex

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
        return scan_entries(self.read_all(), index, key, sort, limit, after, start_time, end_time)
