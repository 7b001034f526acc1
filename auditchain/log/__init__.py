"""
Audit entry storage and hash chain integrity.

This module provides:
- AuditStore: Abstract interface for entry persistence
- MemoryAuditStore: In-process storage
- FileAuditStore: File-based append-only storage (JSONL)
- DynamoDBAuditStore: DynamoDB storage (one item per chain position)
- Integrity: Entry digest and the GENESIS sentinel
"""

from .store import AuditStore, PutResult, ScanIndex, ScanPage, ScanRow, SortOrder
from .memory_store import MemoryAuditStore
from .file_store import FileAuditStore
from .dynamodb_store import DynamoDBAuditStore
from .integrity import GENESIS, HASH_FIELDS, digest, hash_entry, seal

__all__ = [
    "AuditStore",
    "PutResult",
    "ScanIndex",
    "ScanPage",
    "ScanRow",
    "SortOrder",
    "MemoryAuditStore",
    "FileAuditStore",
    "DynamoDBAuditStore",
    "GENESIS",
    "HASH_FIELDS",
    "digest",
    "hash_entry",
    "seal",
]
