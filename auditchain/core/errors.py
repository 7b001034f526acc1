"""
Exception types for the audit trail.
"""


class AuditError(Exception):
    """Base class for audit trail errors."""

    retryable = False


class ValidationError(AuditError):
    """Raised when an append or query request is malformed. No storage is touched."""
    pass


class CanonicalizationError(ValidationError):
    """Raised when a value cannot be rendered in canonical hashing form."""
    pass


class StoreError(AuditError):
    """Raised by storage backends when a read or write fails."""
    pass


class ChainResolutionFailure(AuditError):
    """Raised when the chain tail cannot be read. Never replaced by GENESIS."""

    retryable = True


class ChainContentionError(AuditError):
    """Raised when optimistic append retries are exhausted by concurrent writers."""

    retryable = True


class PersistenceFailure(AuditError):
    """Raised when the conditional write keeps failing for non-contention reasons."""

    retryable = True


class QueryFailure(AuditError):
    """Raised when a storage read fails during a query or verification."""

    retryable = True
