# Overview: Service-layer operations for security events; append-only audit of denied access.

"""
Security Event Logging with Multi-Tenant Support

Every denied access (cross-tenant lookup, missing tenant context, role
check, failed login) is written to security_events with the tenant it
happened in. Events commit on their own, so call this outside of an open
unit of work (after the rollback of a failed one is fine).
"""

from flask import g, has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow


CROSS_TENANT_ACCESS_DENIED = "CROSS_TENANT_ACCESS_DENIED"
TENANT_CONTEXT_MISSING = "TENANT_CONTEXT_MISSING"
ROLE_DENIED = "ROLE_DENIED"
LOGIN_FAILED = "LOGIN_FAILED"


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    tenant_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    Request metadata (path, method, client address, user agent) is filled in
    from the active request when the caller does not pass it.
    """
    if has_request_context():
        resource = resource or request.path
        action = action or request.method
        ip_address = ip_address or request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        tenant_id=tenant_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def current_user_id() -> int | None:
    """Id of the authenticated user on this request, if any."""
    if not has_request_context():
        return None
    user = getattr(g, "current_user", None)
    return getattr(user, "id", None)


def list_security_events(tenant_id: int | None = None, event_type: str | None = None, limit: int = 100) -> list[SecurityEvent]:
    query = db.session.query(SecurityEvent)
    if tenant_id is not None:
        query = query.filter(SecurityEvent.tenant_id == tenant_id)
    if event_type:
        query = query.filter(SecurityEvent.event_type == event_type)
    return query.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit).all()
