# Overview: Service-layer operations for payments; encapsulates business logic and database work.

"""
Payment Service

A payment is money received from (수금, "receipt") or paid to (입금,
"payment") a customer. The API speaks receipt/payment; rows store the Korean
value.

MULTI-TENANT: customer_id is required and must belong to the business.
Delete is hard.
"""

from __future__ import annotations

from ..error_codes import ApiError
from ..errors import NotFoundError
from ..extensions import db
from ..models import Payment
from ..models.transactions import PAYMENT_TYPE_BY_API, PAYMENT_TYPES
from ..money import ZERO
from ..validation import ModelValidationPolicy, ValidationError, parse_decimal, parse_optional_int, validate_payload
from .document_service import apply_date_range
from .tenant_service import find_customer_in_business


PAYMENT_NOT_FOUND_MESSAGE = "수금/지급 정보를 찾을 수 없습니다."

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"paymentDate", "paymentMethod", "bankAccount", "description", "memo"},
    required_on_create={"paymentDate"},
    strip_unknown=True,
)


def normalize_payment_type(value) -> str:
    """receipt/payment or 수금/입금 -> stored value."""
    if isinstance(value, str):
        value = value.strip()
        if value.lower() in PAYMENT_TYPE_BY_API:
            return PAYMENT_TYPE_BY_API[value.lower()]
        if value in PAYMENT_TYPES:
            return value
    raise ValidationError(errors=["type must be one of: receipt, payment"])


def _parse(payload: dict, *, partial: bool) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError(errors=["Invalid JSON payload"])

    errors: list[str] = []
    patch: dict = {}
    try:
        patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=partial)
    except ValidationError as e:
        errors.extend(e.errors)

    raw_type = payload.get("type", payload.get("paymentType"))
    if raw_type is not None or not partial:
        try:
            patch["payment_type"] = normalize_payment_type(raw_type)
        except ValidationError as e:
            errors.extend(e.errors)

    if "amount" in payload or not partial:
        try:
            patch["amount"] = parse_decimal("amount", payload.get("amount"), minimum=ZERO)
        except ValidationError as e:
            errors.extend(e.errors)

    if "customerId" in payload or not partial:
        try:
            customer_id = parse_optional_int("customerId", payload.get("customerId"))
            if customer_id is None:
                errors.append("customerId is required")
            else:
                patch["customer_id"] = customer_id
        except ValidationError as e:
            errors.extend(e.errors)

    if errors:
        raise ValidationError(errors=errors)
    return patch


def list_payments(
    *,
    business_id: int,
    payment_type: str | None = None,
    customer_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
):
    query = db.session.query(Payment).filter(Payment.business_id == business_id)
    if payment_type:
        query = query.filter(Payment.payment_type == normalize_payment_type(payment_type))
    if customer_id:
        query = query.filter(Payment.customer_id == customer_id)
    query = apply_date_range(query, Payment.payment_date, start_date, end_date)
    return query.order_by(Payment.payment_date.desc(), Payment.created_at.desc(), Payment.id.desc())


def get_payment(*, business_id: int, payment_id: int) -> Payment:
    payment = db.session.query(Payment).filter(
        Payment.id == payment_id,
        Payment.business_id == business_id,
    ).first()
    if not payment:
        raise NotFoundError(PAYMENT_NOT_FOUND_MESSAGE)
    return payment


def _require_customer(business_id: int, customer_id: int) -> None:
    if not find_customer_in_business(customer_id, business_id):
        raise ApiError("ERR_BIZ_002")


def create_payment(*, business_id: int, payload: dict, commit: bool = True) -> Payment:
    """
    Raises:
        ValidationError: malformed body
        ApiError ERR_BIZ_002: customer not in the business
    """
    patch = _parse(payload, partial=False)
    _require_customer(business_id, patch["customer_id"])

    payment = Payment(business_id=business_id, **patch)
    db.session.add(payment)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return payment


def update_payment(*, business_id: int, payment_id: int, payload: dict) -> Payment:
    payment = get_payment(business_id=business_id, payment_id=payment_id)
    patch = _parse(payload, partial=True)
    if "customer_id" in patch:
        _require_customer(business_id, patch["customer_id"])

    for key, value in patch.items():
        setattr(payment, key, value)
    db.session.commit()
    return payment


def delete_payment(*, business_id: int, payment_id: int) -> None:
    payment = get_payment(business_id=business_id, payment_id=payment_id)
    db.session.delete(payment)
    db.session.commit()
