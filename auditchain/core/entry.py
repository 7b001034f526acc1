"""
Audit log entry model.

Entries are immutable records; dict forms use the camelCase wire names that
also feed the hash.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class ClientContext:
    """Opaque client information captured from the calling request."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None

    def is_empty(self) -> bool:
        return self.ip_address is None and self.user_agent is None and self.session_id is None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "sessionId": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["ClientContext"]:
        if data is None:
            return None
        return cls(
            ip_address=data.get("ipAddress"),
            user_agent=data.get("userAgent"),
            session_id=data.get("sessionId"),
        )


@dataclass(frozen=True)
class AuditLogEntry:
    """
    Immutable audit record.

    Fields:
        id: UUID4 assigned at creation
        timestamp: ISO-8601 UTC, strictly increasing within one chain
        principal_id: Acting user id or "system"
        event_type: EventType wire value
        action: Free-text verb (informational)
        previous_hash: Hash of the prior entry in this chain, or GENESIS
        hash: Digest over every other field
    """

    id: str
    timestamp: str
    principal_id: str
    event_type: str
    action: str
    previous_hash: str
    hash: str = ""
    principal_email: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = field(default=None, hash=False)
    client_context: Optional[ClientContext] = None

    def content_dict(self) -> Dict[str, Any]:
        """Every field except hash, absent optionals as None."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "principalId": self.principal_id,
            "principalEmail": self.principal_email,
            "eventType": self.event_type,
            "action": self.action,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "metadata": self.metadata,
            "clientContext": self.client_context.to_dict() if self.client_context else None,
            "previousHash": self.previous_hash,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.content_dict()
        data["hash"] = self.hash
        return data

    def with_hash(self, digest: str) -> "AuditLogEntry":
        return replace(self, hash=digest)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditLogEntry":
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            principal_id=data["principalId"],
            principal_email=data.get("principalEmail"),
            event_type=data["eventType"],
            action=data["action"],
            resource_type=data.get("resourceType"),
            resource_id=data.get("resourceId"),
            metadata=data.get("metadata"),
            client_context=ClientContext.from_dict(data.get("clientContext")),
            previous_hash=data["previousHash"],
            hash=data.get("hash", ""),
        )
