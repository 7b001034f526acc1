"""
Convenience recorders for the event taxonomy.

Each method fixes the event type, action, resource type and metadata shape
for one kind of business event, so call sites only pass ids.
"""

from typing import Any, Dict, Optional, Union

from ..core.errors import ValidationError
from ..core.event_types import EventType
from .context import CallerContext
from .dispatcher import AuditDispatcher
from .service import EventCaptureService


class AuditRecorder:
    """
    Records events for one caller.

    With an AuditDispatcher sink, calls return immediately (fire-and-forget);
    with an EventCaptureService sink they return the persisted entry.
    """

    def __init__(
        self,
        sink: Union[AuditDispatcher, EventCaptureService],
        caller: CallerContext,
    ) -> None:
        self.sink = sink
        self.caller = caller

    def record(
        self,
        event_type: EventType,
        action: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        request = dict(
            principal_id=self.caller.principal_id,
            principal_email=self.caller.principal_email,
            client_context=self.caller.client_context,
            event_type=event_type,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=metadata,
        )
        if isinstance(self.sink, AuditDispatcher):
            return self.sink.submit(**request)
        return self.sink.append(**request)

    # Documents

    def document_created(self, document_id: str, metadata: Optional[Dict[str, Any]] = None):
        return self.record(EventType.DOCUMENT_CREATE, "create", "draft", document_id, metadata)

    def document_read(self, document_id: str):
        return self.record(EventType.DOCUMENT_READ, "read", "draft", document_id)

    def document_updated(self, document_id: str, metadata: Optional[Dict[str, Any]] = None):
        return self.record(EventType.DOCUMENT_UPDATE, "update", "draft", document_id, metadata)

    def document_deleted(self, document_id: str):
        return self.record(EventType.DOCUMENT_DELETE, "delete", "draft", document_id)

    def document_exported(self, document_id: str, fmt: str):
        return self.record(EventType.DOCUMENT_EXPORT, "export", "draft", document_id, {"format": fmt})

    def document_shared(self, document_id: str, share_type: str, shared_with: Optional[str] = None):
        return self.record(
            EventType.DOCUMENT_SHARE,
            "share",
            "draft",
            document_id,
            {"shareType": share_type, "sharedWith": shared_with},
        )

    def document_duplicated(self, original_id: str, new_id: str):
        return self.record(
            EventType.DOCUMENT_DUPLICATE, "create", "draft", new_id, {"duplicatedFrom": original_id}
        )

    # AI suggestions

    def suggestions_generated(
        self, document_id: str, suggestion_count: int, context: Optional[Dict[str, Any]] = None
    ):
        metadata = {"suggestionCount": suggestion_count}
        metadata.update(context or {})
        return self.record(
            EventType.AI_SUGGESTION_GENERATED, "generate", "ai_suggestion", document_id, metadata
        )

    def suggestion_accepted(self, document_id: str, suggestion_id: str, suggestion_type: Optional[str] = None):
        return self.record(
            EventType.AI_SUGGESTION_ACCEPTED,
            "accept",
            "ai_suggestion",
            suggestion_id,
            {"documentId": document_id, "suggestionType": suggestion_type},
        )

    def suggestion_rejected(self, document_id: str, suggestion_id: str, suggestion_type: Optional[str] = None):
        return self.record(
            EventType.AI_SUGGESTION_REJECTED,
            "reject",
            "ai_suggestion",
            suggestion_id,
            {"documentId": document_id, "suggestionType": suggestion_type},
        )

    def feedback_submitted(self, suggestion_id: str, feedback: str):
        if feedback not in ("up", "down"):
            raise ValidationError("feedback must be 'up' or 'down'")
        return self.record(
            EventType.AI_FEEDBACK_SUBMITTED, "create", "ai_feedback", suggestion_id, {"feedback": feedback}
        )

    # Authentication

    def login(self, user_id: str, email: Optional[str] = None):
        return self.record(EventType.AUTH_LOGIN, "login", "user", user_id, {"email": email})

    def logout(self, user_id: str):
        return self.record(EventType.AUTH_LOGOUT, "logout", "user", user_id)

    def signup(self, user_id: str, email: Optional[str] = None):
        return self.record(EventType.AUTH_SIGNUP, "create", "user", user_id, {"email": email})

    def password_reset(self, email: str):
        return self.record(EventType.AUTH_PASSWORD_RESET, "update", "user", None, {"email": email})

    # Templates

    def template_created(self, template_id: str, template_name: str):
        return self.record(
            EventType.TEMPLATE_CREATE, "create", "template", template_id, {"templateName": template_name}
        )

    def template_updated(self, template_id: str, template_name: str):
        return self.record(
            EventType.TEMPLATE_UPDATE, "update", "template", template_id, {"templateName": template_name}
        )

    def template_deleted(self, template_id: str):
        return self.record(EventType.TEMPLATE_DELETE, "delete", "template", template_id)

    # Snapshots

    def snapshot_created(self, document_id: str, snapshot_id: str, is_auto_save: bool):
        return self.record(
            EventType.SNAPSHOT_CREATE,
            "create",
            "snapshot",
            snapshot_id,
            {"documentId": document_id, "isAutoSave": is_auto_save},
        )

    def snapshot_restored(self, document_id: str, snapshot_id: str):
        return self.record(
            EventType.SNAPSHOT_RESTORE, "update", "snapshot", snapshot_id, {"documentId": document_id}
        )

    # Admin

    def admin_accessed(self, section: str):
        return self.record(EventType.ADMIN_ACCESS, "read", "admin", None, {"section": section})
