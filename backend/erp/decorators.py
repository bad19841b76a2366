# Overview: Request decorators for authentication, roles and business scoping.

from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from .error_codes import ApiError
from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN
from .services.security_service import log_request_event
from .services.tenant_service import require_business_access


def _load_user() -> User | None:
    identity = get_jwt_identity()
    try:
        user_id = int(identity)
    except (TypeError, ValueError):
        return None
    return db.session.get(User, user_id)


def require_auth(f):
    """
    Require a valid access token (authToken cookie or Bearer header).

    Sets:
    - g.current_user: the authenticated, active User
    - g.token_business_id: businessId claim of the token (may be None)

    SECURITY: Missing/expired/invalid tokens are answered by the JWT loaders
    registered in create_app (401). A token for a deleted or deactivated
    user is rejected with ERR_AUTH_005.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        verify_jwt_in_request()
        user = _load_user()
        if user is None or not user.is_active:
            raise ApiError("ERR_AUTH_005")

        g.current_user = user
        g.token_business_id = get_jwt().get("businessId") or None
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Reject sales_viewer accounts.

    SECURITY: A sales_viewer may only list, view and sign sales; every other
    write path and master-data screen is admin only. Denials are audited.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = g.current_user
        if user.role != ROLE_ADMIN:
            log_request_event(
                "ROLE_ACCESS_DENIED",
                reason=f"role {user.role} may not call this endpoint",
                user_id=user.id,
                business_id=user.business_id,
            )
            raise ApiError("ERR_AUTH_006")
        return f(*args, **kwargs)

    return decorated_function


def business_scope(owner_only: bool = False):
    """
    Resolve the <business_id> path parameter into g.business.

    MULTI-TENANT: Runs require_business_access, so a business the caller
    cannot reach is reported as missing (404). owner_only additionally
    requires the caller to be the Business.user_id owner (403 otherwise),
    for user management and destructive settings.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.current_user
            business = require_business_access(kwargs["business_id"], user)
            if owner_only and business.user_id != user.id:
                log_request_event(
                    "ROLE_ACCESS_DENIED",
                    reason=f"user {user.id} is not the owner of business {business.id}",
                    user_id=user.id,
                    business_id=business.id,
                )
                raise ApiError("ERR_AUTH_006")
            g.business = business
            return f(*args, **kwargs)

        return decorated_function
    return decorator
