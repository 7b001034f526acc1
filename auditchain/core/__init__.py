"""
Core audit trail primitives.

This module provides the foundational abstractions:
- AuditLogEntry / ClientContext: Immutable entry records
- EventType: Closed, versioned event taxonomy
- Canonical: Deterministic serialization
- Clock: UTC timestamps with per-chain monotonicity
- IDs: Entry identifier generation
"""

from .entry import AuditLogEntry, ClientContext
from .event_types import EventType, EventCategory, TAXONOMY_VERSION, parse_event_type
from .canonical import canonicalize, canonical_json_bytes, canonical_json_str
from .clock import SystemClock, ManualClock, format_timestamp, parse_timestamp
from .ids import new_entry_id
from .errors import (
    AuditError,
    ValidationError,
    CanonicalizationError,
    StoreError,
    ChainResolutionFailure,
    ChainContentionError,
    PersistenceFailure,
    QueryFailure,
)

__all__ = [
    "AuditLogEntry",
    "ClientContext",
    "EventType",
    "EventCategory",
    "TAXONOMY_VERSION",
    "parse_event_type",
    "canonicalize",
    "canonical_json_bytes",
    "canonical_json_str",
    "SystemClock",
    "ManualClock",
    "format_timestamp",
    "parse_timestamp",
    "new_entry_id",
    "AuditError",
    "ValidationError",
    "CanonicalizationError",
    "StoreError",
    "ChainResolutionFailure",
    "ChainContentionError",
    "PersistenceFailure",
    "QueryFailure",
]
