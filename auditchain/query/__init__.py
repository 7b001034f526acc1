"""
Audit log queries.
"""

from .engine import AuditQuery, QueryEngine, QueryPage, DEFAULT_LIMIT, MAX_LIMIT
from .cursor import decode_cursor, encode_cursor

__all__ = [
    "AuditQuery",
    "QueryEngine",
    "QueryPage",
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "decode_cursor",
    "encode_cursor",
]
