"""
Closed, versioned event-type taxonomy.

Adding a member is a taxonomy change: bump TAXONOMY_VERSION. Values are the
wire strings stored in entries and fed into the hash, so existing values
must never be renamed.
"""

from enum import Enum
from typing import Dict, List, Union

from .errors import ValidationError

TAXONOMY_VERSION = 1


class EventCategory(str, Enum):
    AUTH = "auth"
    DOCUMENT = "document"
    AI = "ai"
    TEMPLATE = "template"
    SNAPSHOT = "snapshot"
    ADMIN = "admin"


class EventType(str, Enum):
    AUTH_LOGIN = "AUTH_LOGIN"
    AUTH_LOGOUT = "AUTH_LOGOUT"
    AUTH_SIGNUP = "AUTH_SIGNUP"
    AUTH_PASSWORD_RESET = "AUTH_PASSWORD_RESET"
    DOCUMENT_CREATE = "DOCUMENT_CREATE"
    DOCUMENT_READ = "DOCUMENT_READ"
    DOCUMENT_UPDATE = "DOCUMENT_UPDATE"
    DOCUMENT_DELETE = "DOCUMENT_DELETE"
    DOCUMENT_EXPORT = "DOCUMENT_EXPORT"
    DOCUMENT_SHARE = "DOCUMENT_SHARE"
    DOCUMENT_DUPLICATE = "DOCUMENT_DUPLICATE"
    AI_SUGGESTION_GENERATED = "AI_SUGGESTION_GENERATED"
    AI_SUGGESTION_ACCEPTED = "AI_SUGGESTION_ACCEPTED"
    AI_SUGGESTION_REJECTED = "AI_SUGGESTION_REJECTED"
    AI_FEEDBACK_SUBMITTED = "AI_FEEDBACK_SUBMITTED"
    TEMPLATE_CREATE = "TEMPLATE_CREATE"
    TEMPLATE_UPDATE = "TEMPLATE_UPDATE"
    TEMPLATE_DELETE = "TEMPLATE_DELETE"
    SNAPSHOT_CREATE = "SNAPSHOT_CREATE"
    SNAPSHOT_RESTORE = "SNAPSHOT_RESTORE"
    ADMIN_ACCESS = "ADMIN_ACCESS"

    @property
    def category(self) -> EventCategory:
        return _CATEGORIES[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_CATEGORIES: Dict[EventType, EventCategory] = {
    EventType.AUTH_LOGIN: EventCategory.AUTH,
    EventType.AUTH_LOGOUT: EventCategory.AUTH,
    EventType.AUTH_SIGNUP: EventCategory.AUTH,
    EventType.AUTH_PASSWORD_RESET: EventCategory.AUTH,
    EventType.DOCUMENT_CREATE: EventCategory.DOCUMENT,
    EventType.DOCUMENT_READ: EventCategory.DOCUMENT,
    EventType.DOCUMENT_UPDATE: EventCategory.DOCUMENT,
    EventType.DOCUMENT_DELETE: EventCategory.DOCUMENT,
    EventType.DOCUMENT_EXPORT: EventCategory.DOCUMENT,
    EventType.DOCUMENT_SHARE: EventCategory.DOCUMENT,
    EventType.DOCUMENT_DUPLICATE: EventCategory.DOCUMENT,
    EventType.AI_SUGGESTION_GENERATED: EventCategory.AI,
    EventType.AI_SUGGESTION_ACCEPTED: EventCategory.AI,
    EventType.AI_SUGGESTION_REJECTED: EventCategory.AI,
    EventType.AI_FEEDBACK_SUBMITTED: EventCategory.AI,
    EventType.TEMPLATE_CREATE: EventCategory.TEMPLATE,
    EventType.TEMPLATE_UPDATE: EventCategory.TEMPLATE,
    EventType.TEMPLATE_DELETE: EventCategory.TEMPLATE,
    EventType.SNAPSHOT_CREATE: EventCategory.SNAPSHOT,
    EventType.SNAPSHOT_RESTORE: EventCategory.SNAPSHOT,
    EventType.ADMIN_ACCESS: EventCategory.ADMIN,
}

_LABELS: Dict[EventType, str] = {
    EventType.AUTH_LOGIN: "User Login",
    EventType.AUTH_LOGOUT: "User Logout",
    EventType.AUTH_SIGNUP: "User Signup",
    EventType.AUTH_PASSWORD_RESET: "Password Reset",
    EventType.DOCUMENT_CREATE: "Document Created",
    EventType.DOCUMENT_READ: "Document Viewed",
    EventType.DOCUMENT_UPDATE: "Document Updated",
    EventType.DOCUMENT_DELETE: "Document Deleted",
    EventType.DOCUMENT_EXPORT: "Document Exported",
    EventType.DOCUMENT_SHARE: "Document Shared",
    EventType.DOCUMENT_DUPLICATE: "Document Duplicated",
    EventType.AI_SUGGESTION_GENERATED: "AI Suggestions Generated",
    EventType.AI_SUGGESTION_ACCEPTED: "AI Suggestion Accepted",
    EventType.AI_SUGGESTION_REJECTED: "AI Suggestion Rejected",
    EventType.AI_FEEDBACK_SUBMITTED: "AI Feedback Submitted",
    EventType.TEMPLATE_CREATE: "Template Created",
    EventType.TEMPLATE_UPDATE: "Template Updated",
    EventType.TEMPLATE_DELETE: "Template Deleted",
    EventType.SNAPSHOT_CREATE: "Snapshot Created",
    EventType.SNAPSHOT_RESTORE: "Snapshot Restored",
    EventType.ADMIN_ACCESS: "Admin Panel Accessed",
}


def parse_event_type(value: Union[str, EventType, None]) -> EventType:
    """
    Resolve a wire string to an EventType.

    Raises:
        ValidationError: If value is empty or not part of the taxonomy
    """
    if isinstance(value, EventType):
        return value
    if value is None or not str(value).strip():
        raise ValidationError("eventType is required")
    try:
        return EventType(str(value).strip())
    except ValueError:
        raise ValidationError(
            f"unknown eventType {value!r} (taxonomy v{TAXONOMY_VERSION})"
        ) from None


def event_types_in(category: EventCategory) -> List[EventType]:
    return [t for t in EventType if t.category == category]
