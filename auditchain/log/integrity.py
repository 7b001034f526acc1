"""
Hash chain integrity.

Implements the per-principal tamper-evident chain: each entry carries the
hash of the principal's previous entry, and its own hash covers every other
field including that link.
"""

import hashlib
from typing import Any, Dict, Mapping

from ..core.canonical import canonical_json_bytes
from ..core.entry import AuditLogEntry

GENESIS = "GENESIS"

HASH_FIELDS = (
    "id",
    "timestamp",
    "principalId",
    "principalEmail",
    "eventType",
    "action",
    "resourceType",
    "resourceId",
    "metadata",
    "clientContext",
    "previousHash",
)

_CLIENT_CONTEXT_FIELDS = ("ipAddress", "userAgent", "sessionId")


def hash_fields(content: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Select the hashed fields from an entry dict.

    Every field in HASH_FIELDS is present; absent values become None. A
    present clientContext always carries all of its sub-keys. Any "hash"
    key in content is ignored.
    """
    data: Dict[str, Any] = {name: content.get(name) for name in HASH_FIELDS}
    ctx = data["clientContext"]
    if ctx is not None:
        data["clientContext"] = {name: ctx.get(name) for name in _CLIENT_CONTEXT_FIELDS}
    return data


def digest(content: Mapping[str, Any]) -> str:
    """
    Compute the entry digest.

    Hash input: canonical_json(hash_fields(content)) as UTF-8.

    Args:
        content: Entry dict (camelCase keys), with or without "hash"

    Returns:
        SHA-256 hash as lowercase hex string
    """
    b = canonical_json_bytes(hash_fields(content))
    return hashlib.sha256(b).hexdigest()


def hash_entry(entry: AuditLogEntry) -> str:
    """Recompute the hash of an entry from its content fields."""
    return digest(entry.content_dict())


def seal(entry: AuditLogEntry) -> AuditLogEntry:
    """Return a copy of entry with its hash filled in."""
    return entry.with_hash(hash_entry(entry))
