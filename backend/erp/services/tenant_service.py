"""
Multi-Tenant Service: Business Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every business-scoped request names a business in the URL; that id must be
checked against the caller before any row is read or written.

SECURITY INVARIANTS:
1. An admin may only touch businesses it owns (Business.user_id) or the
   one an owner assigned to it (User.business_id)
2. A sales_viewer may only touch the single business assigned to it
3. A business that fails the check is reported exactly like a missing one
4. Cross-tenant access attempts are logged as security events

USAGE:
    from erp.services.tenant_service import require_business_access

    business = require_business_access(business_id, g.current_user)
"""

from __future__ import annotations

from flask import g

from ..extensions import db
from ..models import Business, Customer, User
from .security_service import log_request_event


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted."""
    pass


def get_current_user() -> User:
    """
    Authenticated user from Flask g context.

    SECURITY: Raises TenantAccessError if not set. This should never happen
    after @require_auth, but is a safety check.
    """
    user = getattr(g, "current_user", None)
    if user is None:
        raise TenantAccessError("Tenant context not established")
    return user


def user_can_access_business(user: User, business: Business) -> bool:
    if user.is_sales_viewer:
        return user.business_id == business.id
    # Admin sub-users created by an owner are bound through business_id
    return business.user_id == user.id or user.business_id == business.id


def require_business_access(business_id: int, user: User | None = None) -> Business:
    """
    Validate that the caller may act on a business.

    SECURITY: Core tenant isolation check. Call this before any operation
    that uses a business id from client input.

    Raises:
        TenantAccessError if the business doesn't exist, is inactive, or
        belongs to someone else
    """
    if user is None:
        user = get_current_user()

    business = db.session.query(Business).filter_by(id=business_id, is_active=True).first()

    if not business:
        _log_cross_tenant_attempt(f"Business {business_id} not found", user=user)
        raise TenantAccessError("Business not found")

    if not user_can_access_business(user, business):
        # CRITICAL: Cross-tenant access attempt
        _log_cross_tenant_attempt(
            f"Business {business_id} is not accessible to user {user.id} ({user.role})",
            user=user,
            business_id=business_id,
        )
        raise TenantAccessError("Business not found")  # Don't reveal it exists

    return business


def get_user_businesses(user: User, active_only: bool = True) -> list[Business]:
    """Businesses visible to the user: owned ones, or the assigned one for sales_viewer."""
    query = db.session.query(Business)
    if user.is_sales_viewer:
        if not user.business_id:
            return []
        query = query.filter(Business.id == user.business_id)
    elif user.business_id:
        query = query.filter(db.or_(Business.user_id == user.id, Business.id == user.business_id))
    else:
        query = query.filter(Business.user_id == user.id)
    if active_only:
        query = query.filter(Business.is_active.is_(True))
    return query.order_by(Business.id.asc()).all()


def resolve_default_business_id(user: User) -> int | None:
    """The business a session starts in: assigned one for sales_viewer, else first owned."""
    if user.business_id:
        return user.business_id
    businesses = get_user_businesses(user)
    return businesses[0].id if businesses else None


def find_customer_in_business(customer_id: int | None, business_id: int) -> Customer | None:
    """
    Customer by id restricted to one business, or None.

    A customer id from another business is treated as unknown.
    """
    if not customer_id:
        return None
    return (
        db.session.query(Customer)
        .filter(Customer.id == customer_id, Customer.business_id == business_id)
        .first()
    )


def _log_cross_tenant_attempt(
    reason: str,
    user: User | None = None,
    business_id: int | None = None,
) -> None:
    """
    Log a cross-tenant access attempt as a security event.

    SECURITY: Critical audit trail for detecting unauthorized access attempts.
    """
    log_request_event(
        "CROSS_TENANT_ACCESS_DENIED",
        success=False,
        reason=reason,
        user_id=user.id if user else None,
        business_id=business_id,
    )
