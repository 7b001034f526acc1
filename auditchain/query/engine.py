"""
Filtered, sorted, paginated reads over stored audit entries.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ..core.clock import normalize_timestamp
from ..core.entry import AuditLogEntry
from ..core.errors import QueryFailure, StoreError, ValidationError
from ..core.event_types import EventType, parse_event_type
from ..log.store import AuditStore, ScanIndex, SortOrder
from ..metrics import track_query_duration
from .cursor import Cursor, decode_cursor, encode_cursor, fingerprint

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
# Storage page size when remaining filters are applied in memory
RESIDUAL_PAGE_SIZE = 100

TimeBound = Union[str, datetime, None]


@dataclass(frozen=True)
class AuditQuery:
    """
    Query filter. Every set field must match (AND); time bounds are inclusive.
    """

    principal_id: Optional[str] = None
    event_type: Union[EventType, str, None] = None
    resource_id: Optional[str] = None
    start_time: TimeBound = None
    end_time: TimeBound = None


@dataclass(frozen=True)
class QueryPage:
    items: List[AuditLogEntry] = field(default_factory=list)
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class _Plan:
    index: ScanIndex
    key: Optional[str]
    residual: Dict[str, str]
    start_time: Optional[str]
    end_time: Optional[str]
    fingerprint: str


class QueryEngine:
    """
    Runs AuditQuery against an AuditStore.

    The best index is chosen from the exact filters (principal, then
    resource, then event type, else the global feed); the time range is
    pushed into the index scan; any other exact filter is applied in memory
    while storage pages are fetched until the logical page is full.
    """

    def __init__(self, store: AuditStore, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT) -> None:
        if not 1 <= default_limit <= max_limit:
            raise ValueError("default_limit must be within 1..max_limit")
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit

    def query(
        self,
        filter: Optional[AuditQuery] = None,
        sort: Union[SortOrder, str] = SortOrder.DESC,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> QueryPage:
        """
        Fetch one page.

        Raises:
            ValidationError: Bad limit, bad time bounds, bad or mismatched cursor
            QueryFailure: Storage read failed
        """
        sort = _sort_order(sort)
        limit = self._limit(limit)
        plan = _plan(filter or AuditQuery())

        position = None
        if cursor:
            decoded = decode_cursor(cursor)
            if (
                decoded.index != plan.index.value
                or decoded.sort != sort.value
                or decoded.fingerprint != plan.fingerprint
            ):
                raise ValidationError("cursor does not belong to this query")
            position = decoded.position

        fetch_size = limit if not plan.residual else max(limit, RESIDUAL_PAGE_SIZE)
        items: List[AuditLogEntry] = []
        last_position: Optional[Dict[str, Any]] = None
        more = False

        with track_query_duration(plan.index.value):
            while True:
                try:
                    page = self.store.scan(
                        plan.index,
                        key=plan.key,
                        sort=sort,
                        limit=fetch_size,
                        after=position,
                        start_time=plan.start_time,
                        end_time=plan.end_time,
                    )
                except (StoreError, OSError) as e:
                    logger.error(f"Audit query failed on {plan.index.value} index: {e}")
                    raise QueryFailure(f"audit query failed, retry later: {e}") from e

                consumed = 0
                for row in page.rows:
                    consumed += 1
                    last_position = row.position
                    if _matches(row.entry, plan.residual):
                        items.append(row.entry)
                        if len(items) == limit:
                            break

                if len(items) == limit:
                    more = consumed < len(page.rows) or page.next_position is not None
                    break
                if page.next_position is None:
                    break
                position = page.next_position

        next_cursor = None
        if more and last_position is not None:
            next_cursor = encode_cursor(
                Cursor(
                    index=plan.index.value,
                    sort=sort.value,
                    fingerprint=plan.fingerprint,
                    position=last_position,
                )
            )
        return QueryPage(items=items, next_cursor=next_cursor)

    def iter_all(
        self,
        filter: Optional[AuditQuery] = None,
        sort: Union[SortOrder, str] = SortOrder.DESC,
        page_size: Optional[int] = None,
    ) -> Iterator[AuditLogEntry]:
        """Yield every matching entry, following cursors until exhausted."""
        cursor = None
        while True:
            page = self.query(filter, sort=sort, limit=page_size or self.max_limit, cursor=cursor)
            yield from page.items
            if page.next_cursor is None:
                return
            cursor = page.next_cursor

    def _limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.default_limit
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError("limit must be an integer")
        if not 1 <= limit <= self.max_limit:
            raise ValidationError(f"limit must be between 1 and {self.max_limit}")
        return limit


def _sort_order(sort: Union[SortOrder, str]) -> SortOrder:
    try:
        return SortOrder(sort.lower() if isinstance(sort, str) else sort)
    except ValueError:
        raise ValidationError(f"sort must be 'asc' or 'desc', got {sort!r}") from None


def _bound(value: TimeBound, name: str) -> Optional[str]:
    if value is None:
        return None
    try:
        return normalize_timestamp(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} is not an ISO-8601 timestamp: {value!r}") from None


def _plan(q: AuditQuery) -> _Plan:
    event_type = parse_event_type(q.event_type).value if q.event_type is not None else None
    start_time = _bound(q.start_time, "startTime")
    end_time = _bound(q.end_time, "endTime")
    if start_time is not None and end_time is not None and start_time > end_time:
        raise ValidationError("startTime is after endTime")

    exact: List[Tuple[ScanIndex, str, Optional[str]]] = [
        (ScanIndex.PRINCIPAL, "principalId", q.principal_id),
        (ScanIndex.RESOURCE, "resourceId", q.resource_id),
        (ScanIndex.EVENT_TYPE, "eventType", event_type),
    ]
    present = [(index, name, value) for index, name, value in exact if value is not None]

    if present:
        index, _, key = present[0]
        residual = {name: value for _, name, value in present[1:]}
    else:
        index, key, residual = ScanIndex.FEED, None, {}

    filter_dict = {name: value for _, name, value in present}
    filter_dict["startTime"] = start_time
    filter_dict["endTime"] = end_time
    return _Plan(
        index=index,
        key=key,
        residual=residual,
        start_time=start_time,
        end_time=end_time,
        fingerprint=fingerprint(filter_dict),
    )


def _matches(entry: AuditLogEntry, residual: Dict[str, str]) -> bool:
    for name, value in residual.items():
        if name == "principalId" and entry.principal_id != value:
            return False
        if name == "resourceId" and entry.resource_id != value:
            return False
        if name == "eventType" and entry.event_type != value:
            return False
    return True
