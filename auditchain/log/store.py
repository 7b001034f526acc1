"""
AuditStore abstract interface.

Defines the storage collaborator contract: latest-by-principal reads,
conditional appends keyed on the observed chain tail, and ordered index scans.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.entry import AuditLogEntry
from ..core.errors import ValidationError
from .integrity import GENESIS

# Upper bound suffix for "<timestamp>#<id>" sort keys: "~" sorts after every id character.
SORT_KEY_CEILING = "#~"

FEED_KEY = "ALL"


class ScanIndex(str, Enum):
    """Storage indexes, each ordered by (timestamp, id)."""

    PRINCIPAL = "principal"
    EVENT_TYPE = "eventType"
    RESOURCE = "resource"
    FEED = "feed"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class PutResult:
    """
    Result of a conditional append.

    When committed is False and conflict is True, the entry was not written.
    When duplicate is True, an entry with the same id was already stored;
    nothing new was written and entry is the stored copy.
    """

    entry: AuditLogEntry
    committed: bool
    conflict: bool
    observed_previous_hash: Optional[str] = None
    duplicate: bool = False


@dataclass(frozen=True)
class ScanRow:
    entry: AuditLogEntry
    position: Dict[str, Any]


@dataclass(frozen=True)
class ScanPage:
    """
    One page of an index scan.

    next_position is None when the scan is exhausted.
    """

    rows: List[ScanRow] = field(default_factory=list)
    next_position: Optional[Dict[str, Any]] = None

    @property
    def items(self) -> List[AuditLogEntry]:
        return [row.entry for row in self.rows]


class AuditStore(ABC):
    """
    Abstract audit storage interface.

    All implementations must guarantee:
    - Append-only (no updates, no deletes)
    - Atomic writes (an entry is fully visible or not at all)
    - At most one committed entry per observed chain tail
    - At most one stored entry per entry id
    """

    @abstractmethod
    def get_latest_by_principal(self, principal_id: str) -> Optional[AuditLogEntry]:
        """
        Return the most recent entry in principal_id's chain, or None.

        Raises:
            StoreError: If the read fails
        """
        ...

    @abstractmethod
    def put_entry_if_tail_unchanged(
        self, entry: AuditLogEntry, expected_previous_hash: Optional[str]
    ) -> PutResult:
        """
        Append entry only if the chain tail still hashes to expected_previous_hash.

        expected_previous_hash=None skips the tail comparison. An entry whose id
        is already stored is not written again; the result is marked duplicate.

        Returns:
            PutResult with commit/conflict info

        Raises:
            StoreError: If the write fails for reasons other than contention
        """
        ...

    @abstractmethod
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
        """
        Ordered range scan over one index.

        Args:
            index: Index to scan
            key: Partition value (principal id, event type, resource id); ignored for FEED
            sort: Order by (timestamp, id)
            limit: Maximum rows returned
            after: Position of the last row already consumed (exclusive)
            start_time: Inclusive lower timestamp bound (normalized form)
            end_time: Inclusive upper timestamp bound (normalized form)

        Raises:
            StoreError: If the read fails
        """
        ...

    def tail_hash(self, principal_id: str) -> str:
        latest = self.get_latest_by_principal(principal_id)
        return latest.hash if latest is not None else GENESIS


def position_fields(position: Dict[str, Any], *names: str) -> Tuple[Any, ...]:
    """
    Pull the named fields out of a resume position.

    Positions arrive from client-held cursors, so a missing field is a
    ValidationError rather than a KeyError.
    """
    try:
        return tuple(position[name] for name in names)
    except (KeyError, TypeError) as e:
        raise ValidationError("malformed cursor") from e


def sort_key(entry: AuditLogEntry) -> Tuple[str, str]:
    return entry.timestamp, entry.id


def index_key(index: ScanIndex, entry: AuditLogEntry) -> Optional[str]:
    """Partition value of entry under index (None when the entry is not indexed)."""
    if index == ScanIndex.PRINCIPAL:
        return entry.principal_id
    if index == ScanIndex.EVENT_TYPE:
        return entry.event_type
    if index == ScanIndex.RESOURCE:
        return entry.resource_id
    return FEED_KEY


def scan_entries(
    entries: Iterable[AuditLogEntry],
    index: ScanIndex,
    key: Optional[str],
    sort: SortOrder,
    limit: int,
    after: Optional[Dict[str, Any]],
    start_time: Optional[str],
    end_time: Optional[str],
) -> ScanPage:
    """
    Index scan over an in-memory entry collection.

    Shared by stores that keep (or load) all entries locally. Positions are
    {"ts": timestamp, "id": id}.
    """
    wanted = FEED_KEY if index == ScanIndex.FEED else key

    def keep(e: AuditLogEntry) -> bool:
        if index_key(index, e) != wanted:
            return False
        if start_time is not None and e.timestamp < start_time:
            return False
        if end_time is not None and e.timestamp > end_time:
            return False
        return True

    reverse = sort == SortOrder.DESC
    selected = sorted((e for e in entries if keep(e)), key=sort_key, reverse=reverse)

    if after is not None:
        mark = position_fields(after, "ts", "id")
        if not all(isinstance(part, str) for part in mark):
            raise ValidationError("malformed cursor")
        if reverse:
            selected = [e for e in selected if sort_key(e) < mark]
        else:
            selected = [e for e in selected if sort_key(e) > mark]

    page = selected[:limit]
    rows = [ScanRow(entry=e, position={"ts": e.timestamp, "id": e.id}) for e in page]
    next_position = rows[-1].position if len(selected) > limit else None
    return ScanPage(rows=rows, next_position=next_position)
