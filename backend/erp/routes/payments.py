# Overview: Flask API routes for receipts (수금) and payments (지급).

"""
Payment Routes

`type` is receipt (money in from a customer) or payment (money out).
The customer must belong to the business; otherwise 404.
"""

from flask import Blueprint, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..pagination import paginate, parse_page_args
from ..responses import ok, paginated
from ..services import activity_log_service, payment_service
from ..validation import parse_optional_int


payments_bp = Blueprint(
    "payments",
    __name__,
    url_prefix="/api/businesses/<int:business_id>/payments",
)


@payments_bp.get("")
@require_auth
@require_admin
@business_scope()
def list_payments_route(business_id: int):
    """Query parameters: page, limit, type (receipt/payment), customerId, startDate, endDate."""
    page, limit = parse_page_args(request.args)
    query = payment_service.list_payments(
        business_id=business_id,
        payment_type=request.args.get("type"),
        customer_id=parse_optional_int("customerId", request.args.get("customerId")),
        start_date=request.args.get("startDate"),
        end_date=request.args.get("endDate"),
    )
    rows, meta = paginate(query, page=page, limit=limit)
    return paginated([p.to_dict() for p in rows], meta)


@payments_bp.get("/<int:payment_id>")
@require_auth
@require_admin
@business_scope()
def get_payment_route(business_id: int, payment_id: int):
    payment = payment_service.get_payment(business_id=business_id, payment_id=payment_id)
    return ok(payment.to_dict())


@payments_bp.post("")
@require_auth
@require_admin
@business_scope()
def create_payment_route(business_id: int):
    payment = payment_service.create_payment(business_id=business_id, payload=request.get_json(silent=True))
    activity_log_service.log_activity(
        "create", "payment", payment.id, f"수금/지급 등록: {payment.amount}",
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(payment.to_dict(), "수금/지급이 등록되었습니다.", 201)


@payments_bp.put("/<int:payment_id>")
@require_auth
@require_admin
@business_scope()
def update_payment_route(business_id: int, payment_id: int):
    payment = payment_service.update_payment(
        business_id=business_id,
        payment_id=payment_id,
        payload=request.get_json(silent=True),
    )
    return ok(payment.to_dict(), "수금/지급이 수정되었습니다.")


@payments_bp.delete("/<int:payment_id>")
@require_auth
@require_admin
@business_scope()
def delete_payment_route(business_id: int, payment_id: int):
    payment_service.delete_payment(business_id=business_id, payment_id=payment_id)
    activity_log_service.log_activity(
        "delete", "payment", payment_id,
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(message="수금/지급이 삭제되었습니다.")
