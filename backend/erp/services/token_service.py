# Overview: Service-layer operations for JWT issuance and auth cookies.

"""
Token Service

Access and refresh tokens are flask-jwt-extended JWTs signed with JWT_SECRET.
Identity is the user id (as a string); email and businessId travel as
additional claims.

Lifetime follows the business's "sessionTimeout" setting (1, 4, 8 or 24
hours, default 24). The refresh token lives twice as long.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    set_access_cookies,
    set_refresh_cookies,
    unset_jwt_cookies,
)

from ..extensions import db
from ..models import CompanySettings, User
from .tenant_service import resolve_default_business_id


ALLOWED_SESSION_HOURS = (1, 4, 8, 24)
DEFAULT_SESSION_HOURS = 24


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    refresh_token: str
    lifetime: timedelta

    @property
    def refresh_lifetime(self) -> timedelta:
        return self.lifetime * 2


def session_timeout_hours(business_id: int | None) -> int:
    """Configured session length for a business, falling back to 24h on anything unexpected."""
    if not business_id:
        return DEFAULT_SESSION_HOURS

    setting = db.session.query(CompanySettings).filter_by(
        business_id=business_id, setting_key="sessionTimeout"
    ).first()
    if not setting or not setting.setting_value:
        return DEFAULT_SESSION_HOURS
    try:
        hours = int(str(setting.setting_value).strip().rstrip("hH"))
    except ValueError:
        return DEFAULT_SESSION_HOURS
    return hours if hours in ALLOWED_SESSION_HOURS else DEFAULT_SESSION_HOURS


def issue_tokens(user: User, business_id: int | None = None) -> IssuedTokens:
    if business_id is None:
        business_id = resolve_default_business_id(user)

    lifetime = timedelta(hours=session_timeout_hours(business_id))
    claims = {"email": user.email, "businessId": business_id or 0}

    access = create_access_token(
        identity=str(user.id),
        additional_claims=claims,
        expires_delta=lifetime,
    )
    refresh = create_refresh_token(
        identity=str(user.id),
        additional_claims=claims,
        expires_delta=lifetime * 2,
    )
    return IssuedTokens(access_token=access, refresh_token=refresh, lifetime=lifetime)


def attach_cookies(response, tokens: IssuedTokens):
    """Set HttpOnly authToken/refreshToken cookies on a response."""
    set_access_cookies(response, tokens.access_token, max_age=int(tokens.lifetime.total_seconds()))
    set_refresh_cookies(response, tokens.refresh_token, max_age=int(tokens.refresh_lifetime.total_seconds()))
    return response


def clear_cookies(response):
    unset_jwt_cookies(response)
    return response
