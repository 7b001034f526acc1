"""
Caller-context extraction.

Turns an authenticated identity and request headers into the principal and
client context recorded with each entry. Header values are opaque strings:
they are copied, never validated.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from ..core.entry import ClientContext
from .service import SYSTEM_PRINCIPAL


def extract_principal(
    identity: Optional[Mapping[str, Any]],
    arguments: Optional[Mapping[str, Any]] = None,
) -> Tuple[str, Optional[str]]:
    """
    Resolve (principal_id, principal_email).

    Order: identity "sub" (email from claims), identity "username",
    arguments "userId", then the literal "system".
    """
    if identity:
        sub = identity.get("sub")
        if sub:
            claims = identity.get("claims") or {}
            return str(sub), claims.get("email")
        username = identity.get("username")
        if username:
            return str(username), None

    if arguments and arguments.get("userId"):
        return str(arguments["userId"]), None

    return SYSTEM_PRINCIPAL, None


def extract_client_context(headers: Optional[Mapping[str, str]]) -> Optional[ClientContext]:
    """
    Build ClientContext from request headers (names are case-insensitive).

    The IP is the first X-Forwarded-For hop, falling back to X-Real-IP.
    """
    if not headers:
        return None
    lowered = {str(k).lower(): v for k, v in headers.items()}

    ip_address = None
    forwarded = lowered.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip() or None
    if ip_address is None:
        ip_address = lowered.get("x-real-ip")

    ctx = ClientContext(
        ip_address=ip_address,
        user_agent=lowered.get("user-agent"),
        session_id=lowered.get("x-session-id"),
    )
    return None if ctx.is_empty() else ctx


@dataclass(frozen=True)
class CallerContext:
    principal_id: str
    principal_email: Optional[str] = None
    client_context: Optional[ClientContext] = None

    @classmethod
    def from_request(
        cls,
        identity: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        arguments: Optional[Mapping[str, Any]] = None,
    ) -> "CallerContext":
        principal_id, email = extract_principal(identity, arguments)
        return cls(
            principal_id=principal_id,
            principal_email=email,
            client_context=extract_client_context(headers),
        )
