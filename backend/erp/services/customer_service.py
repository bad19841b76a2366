# Overview: Service-layer operations for customers; encapsulates business logic and database work.

"""
Customer Service

MULTI-TENANT: Customers are scoped to a business via business_id. Callers
must have validated the business with tenant_service first.

RULES:
- customer_code is generated per business (C0001, C0002, ...) when omitted
- business_number is stored as 10 digits; an active customer in the same
  business may not reuse it
- customer_type accepts 매출처/매입처/기타 or sales/purchase/other
- delete is soft: the row stays for historical sales and purchases
"""

from __future__ import annotations

import re

from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer
from ..models.customers import CUSTOMER_TYPE_ALIASES, CUSTOMER_TYPE_OTHER, CUSTOMER_TYPES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_customer,
    validate_payload,
)


CUSTOMER_NOT_FOUND_MESSAGE = "거래처를 찾을 수 없습니다."
DUPLICATE_BUSINESS_NUMBER_MESSAGE = "이미 등록된 사업자번호입니다."

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customerCode", "name", "businessNumber", "customerType", "phone",
        "email", "address", "representative", "fax", "managerContact",
        "businessType", "businessItem", "memo",
    },
    required_on_create={"name"},
    strip_unknown=True,
)

# API sort field -> column
SORT_FIELDS = {
    "name": Customer.name,
    "customerCode": Customer.customer_code,
    "businessNumber": Customer.business_number,
    "customerType": Customer.customer_type,
    "createdAt": Customer.created_at,
    "updatedAt": Customer.updated_at,
}

_CODE_RE = re.compile(r"^C(\d+)$")


def normalize_customer_type(value: str | None) -> str:
    """Map API/spreadsheet vocabulary onto the stored Korean value."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return CUSTOMER_TYPE_OTHER
    value = str(value).strip()
    value = CUSTOMER_TYPE_ALIASES.get(value.lower(), value)
    if value not in CUSTOMER_TYPES:
        raise ValidationError(errors=["customerType must be one of: 매출처, 매입처, 기타"])
    return value


def next_customer_code(business_id: int) -> str:
    """Next C#### code for a business, counting inactive customers too."""
    codes = db.session.query(Customer.customer_code).filter(
        Customer.business_id == business_id,
        Customer.customer_code.like("C%"),
    ).all()
    highest = 0
    for (code,) in codes:
        m = _CODE_RE.match(code or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return f"C{highest + 1:04d}"


def _clean_patch(payload: dict, *, partial: bool) -> dict:
    payload = dict(payload or {})
    customer_type = payload.pop("customerType", None)
    code = payload.get("customerCode")
    if code is None or (isinstance(code, str) and not code.strip()):
        payload.pop("customerCode", None)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=partial)
    enforce_rules_customer(patch)
    if customer_type is not None or not partial:
        patch["customer_type"] = normalize_customer_type(customer_type)
    return patch


def _ensure_unique_business_number(business_id: int, business_number: str | None, exclude_id: int | None = None) -> None:
    if not business_number:
        return
    query = db.session.query(Customer).filter(
        Customer.business_id == business_id,
        Customer.business_number == business_number,
        Customer.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError(DUPLICATE_BUSINESS_NUMBER_MESSAGE)


def _ensure_unique_code(business_id: int, code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Customer).filter(
        Customer.business_id == business_id,
        Customer.customer_code == code,
    )
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError("이미 사용 중인 거래처 코드입니다.")


def list_customers(
    *,
    business_id: int,
    search: str | None = None,
    customer_type: str | None = None,
    sort_field: str | None = None,
    sort_order: str | None = None,
):
    """Query of active customers with search, type filter and whitelisted sort."""
    query = db.session.query(Customer).filter(
        Customer.business_id == business_id,
        Customer.is_active.is_(True),
    )

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(like), Customer.business_number.ilike(like)))

    if customer_type:
        query = query.filter(Customer.customer_type == normalize_customer_type(customer_type))

    column = SORT_FIELDS.get(sort_field or "")
    if column is not None and sort_order:
        direction = column.asc() if sort_order.lower() == "asc" else column.desc()
        query = query.order_by(direction, Customer.id.asc())
    else:
        query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
    return query


def get_customer(*, business_id: int, customer_id: int) -> Customer:
    """Active customer in the business. Raises NotFoundError otherwise."""
    customer = db.session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.business_id == business_id,
        Customer.is_active.is_(True),
    ).first()
    if not customer:
        raise NotFoundError(CUSTOMER_NOT_FOUND_MESSAGE)
    return customer


def create_customer(*, business_id: int, payload: dict, commit: bool = True) -> Customer:
    """
    Create a customer.

    Raises:
        ValidationError: invalid fields
        ConflictError: business number used by an active customer, or code taken
    """
    patch = _clean_patch(payload, partial=False)
    _ensure_unique_business_number(business_id, patch.get("business_number"))

    if patch.get("customer_code"):
        _ensure_unique_code(business_id, patch["customer_code"])
    else:
        patch["customer_code"] = next_customer_code(business_id)

    customer = Customer(business_id=business_id, is_active=True, **patch)
    db.session.add(customer)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return customer


def update_customer(*, business_id: int, customer_id: int, payload: dict, commit: bool = True) -> Customer:
    customer = get_customer(business_id=business_id, customer_id=customer_id)
    patch = _clean_patch(payload, partial=True)

    if "business_number" in patch:
        _ensure_unique_business_number(business_id, patch["business_number"], exclude_id=customer.id)
    if patch.get("customer_code") and patch["customer_code"] != customer.customer_code:
        _ensure_unique_code(business_id, patch["customer_code"], exclude_id=customer.id)

    for key, value in patch.items():
        setattr(customer, key, value)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return customer


def delete_customer(*, business_id: int, customer_id: int) -> None:
    """Soft delete."""
    customer = get_customer(business_id=business_id, customer_id=customer_id)
    customer.is_active = False
    db.session.commit()


def find_by_name_or_number(business_id: int, term: str) -> Customer | None:
    """First active customer whose name or business number contains term."""
    if not term:
        return None
    like = f"%{term.strip()}%"
    return db.session.query(Customer).filter(
        Customer.business_id == business_id,
        Customer.is_active.is_(True),
        db.or_(Customer.name.ilike(like), Customer.business_number.ilike(like)),
    ).order_by(Customer.id.asc()).first()
