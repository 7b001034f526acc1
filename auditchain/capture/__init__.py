"""
Event capture: synchronous append, fire-and-forget dispatch, caller context
and per-category recorders.
"""

from .service import EventCaptureService, SYSTEM_PRINCIPAL
from .dispatcher import AuditDispatcher, DispatchFailure
from .context import CallerContext, extract_client_context, extract_principal
from .recorders import AuditRecorder

__all__ = [
    "EventCaptureService",
    "SYSTEM_PRINCIPAL",
    "AuditDispatcher",
    "DispatchFailure",
    "CallerContext",
    "extract_client_context",
    "extract_principal",
    "AuditRecorder",
]
