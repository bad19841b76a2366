# Overview: Service-layer operations for the security audit trail.

"""
Security audit trail.

WHY: Immutable audit log for detecting credential stuffing, cross-tenant
probing and CSRF abuse. Every rejected security check writes one row and
one application log warning.

event_type examples:
- LOGIN_FAILED / LOGIN_SUCCESS
- CROSS_TENANT_ACCESS_DENIED
- CSRF_TOKEN_INVALID
- RATE_LIMIT_EXCEEDED
- OTP_VERIFY_FAILED
- ACCOUNT_DELETED
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app, has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from erp.time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    business_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    MULTI-TENANT: Includes business_id so events can be filtered per tenant.
    """
    event = SecurityEvent(
        user_id=user_id,
        business_id=business_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    if not success:
        current_app.logger.warning(
            "Security event %s on %s %s: %s",
            event_type, action, resource, reason,
        )

    return event


def log_request_event(
    event_type: str,
    *,
    success: bool = False,
    reason: str | None = None,
    user_id: int | None = None,
    business_id: int | None = None,
    action: str | None = None,
) -> SecurityEvent:
    """log_security_event with path, method, ip and user agent taken from the current request."""
    if has_request_context():
        resource = request.path
        action = action or request.method
        ip_address = client_ip()
        user_agent = request.headers.get("User-Agent")
    else:
        resource = ip_address = user_agent = None

    return log_security_event(
        user_id=user_id,
        event_type=event_type,
        success=success,
        resource=resource,
        action=action,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        business_id=business_id,
    )


def client_ip() -> str | None:
    """
    Socket address of the client.

    SECURITY: X-Forwarded-For is never read here. Behind a reverse proxy,
    TRUST_PROXY_HOPS installs ProxyFix, which rewrites remote_addr from the
    entries the trusted proxies appended.
    """
    return request.remote_addr


def purge_security_events(*, retention_days: int = 90) -> int:
    """Delete events older than the retention window. Returns the number removed."""
    if retention_days < 1:
        raise ValueError("retention_days must be >= 1")
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    current_app.logger.info("Purged %s security events older than %s days", deleted, retention_days)
    return deleted
