# Overview: Service-layer operations for businesses; encapsulates business logic and database work.

"""
Business Service

MULTI-TENANT: A Business is the tenant root. Listing returns only the
caller's own businesses (or the assigned one for sales_viewer); every other
operation goes through tenant_service.require_business_access first.

Business numbers are accepted with or without dashes and stored as 10 digits.
Deletion is soft (is_active=False).
"""

from __future__ import annotations

import re

from ..errors import NotFoundError
from ..extensions import db
from ..models import Business, User
from ..validation import (
    EMAIL_PATTERN,
    PHONE_PATTERN,
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    normalize_business_number,
    validate_payload,
)
from .tenant_service import require_business_access


BUSINESS_NUMBER_FORMAT = r"^\d{3}-\d{2}-\d{5}$"
BUSINESS_NOT_FOUND_MESSAGE = "사업자를 찾을 수 없습니다."

BUSINESS_POLICY = ModelValidationPolicy(
    writable_fields={
        "businessNumber", "companyName", "representative", "businessType",
        "businessItem", "address", "phone", "fax", "email", "homepage",
    },
    required_on_create={"businessNumber", "companyName", "representative"},
    strip_unknown=True,
    patterns={
        "businessNumber": r"^[0-9-]+$",
        "phone": PHONE_PATTERN,
        "fax": PHONE_PATTERN,
        "email": EMAIL_PATTERN,
        "homepage": r"^https?://\S+$",
    },
)


def _check_business_number(patch: dict, *, exclude_id: int | None = None) -> None:
    if "business_number" not in patch:
        return
    digits = normalize_business_number(patch["business_number"])
    if not digits or len(digits) != 10:
        raise ValidationError(errors=["businessNumber must be 10 digits"])
    patch["business_number"] = digits

    query = db.session.query(Business).filter(Business.business_number == digits)
    if exclude_id is not None:
        query = query.filter(Business.id != exclude_id)
    if query.first():
        raise ConflictError("이미 등록된 사업자번호입니다.")


def list_businesses(*, user: User, search: str | None = None):
    """Query of the caller's active businesses, newest first."""
    query = db.session.query(Business).filter(Business.is_active.is_(True))
    if user.is_sales_viewer:
        query = query.filter(Business.id == user.business_id)
    elif user.business_id:
        query = query.filter(db.or_(Business.user_id == user.id, Business.id == user.business_id))
    else:
        query = query.filter(Business.user_id == user.id)

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Business.company_name.ilike(like),
            Business.business_number.ilike(like),
            Business.representative.ilike(like),
        ))
    return query.order_by(Business.created_at.desc(), Business.id.desc())


def get_business(*, user: User, business_id: int) -> Business:
    return require_business_access(business_id, user)


def create_business(*, user: User, payload: dict) -> Business:
    """
    Register another business for the caller.

    Raises:
        ValidationError: invalid fields
        ConflictError: business number already registered (by anyone)
    """
    patch = validate_payload(model=Business, payload=payload, policy=BUSINESS_POLICY, partial=False)
    _check_business_number(patch)

    business = Business(user_id=user.id, **patch)
    db.session.add(business)
    db.session.commit()
    return business


def update_business(*, user: User, business_id: int, payload: dict) -> Business:
    business = require_business_access(business_id, user)
    if business.user_id != user.id:
        # sales_viewer can see its business but never edit it
        raise NotFoundError(BUSINESS_NOT_FOUND_MESSAGE)

    patch = validate_payload(model=Business, payload=payload, policy=BUSINESS_POLICY, partial=True)
    _check_business_number(patch, exclude_id=business.id)

    for key, value in patch.items():
        setattr(business, key, value)
    db.session.commit()
    return business


def delete_business(*, user: User, business_id: int) -> None:
    """Soft delete: the row and its documents remain for history."""
    business = require_business_access(business_id, user)
    if business.user_id != user.id:
        raise NotFoundError(BUSINESS_NOT_FOUND_MESSAGE)

    business.is_active = False
    db.session.commit()


def validate_business_number(business_number: str) -> dict:
    """
    Format check plus availability.

    Raises ValidationError if the number is not in 123-45-67890 form.
    """
    if not business_number or not re.fullmatch(BUSINESS_NUMBER_FORMAT, business_number):
        raise ValidationError("올바른 사업자번호 형식이 아닙니다. (예: 123-45-67890)")

    digits = normalize_business_number(business_number)
    exists = db.session.query(Business.id).filter(Business.business_number == digits).first() is not None
    return {
        "isValid": not exists,
        "exists": exists,
        "message": "이미 등록된 사업자번호입니다." if exists else "사용 가능한 사업자번호입니다.",
    }
