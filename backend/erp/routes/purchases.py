# Overview: Flask API routes for purchase documents.

from flask import Blueprint, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..pagination import paginate, parse_page_args
from ..responses import ok, paginated
from ..services import activity_log_service, purchase_service
from ..validation import parse_optional_int


purchases_bp = Blueprint(
    "purchases",
    __name__,
    url_prefix="/api/businesses/<int:business_id>/purchases",
)


@purchases_bp.get("")
@require_auth
@require_admin
@business_scope()
def list_purchases_route(business_id: int):
    page, limit = parse_page_args(request.args)
    query = purchase_service.list_purchases(
        business_id=business_id,
        start_date=request.args.get("startDate"),
        end_date=request.args.get("endDate"),
        customer_id=parse_optional_int("customerId", request.args.get("customerId")),
    )
    rows, meta = paginate(query, page=page, limit=limit)
    return paginated([p.to_dict() for p in rows], meta)


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_admin
@business_scope()
def get_purchase_route(business_id: int, purchase_id: int):
    purchase = purchase_service.get_purchase(business_id=business_id, purchase_id=purchase_id)
    return ok(purchase.to_dict())


@purchases_bp.post("")
@require_auth
@require_admin
@business_scope()
def create_purchase_route(business_id: int):
    purchase = purchase_service.create_purchase(business_id=business_id, payload=request.get_json(silent=True))
    activity_log_service.log_activity(
        "create", "purchase", purchase.id, f"매입 등록: {purchase.total_amount}",
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(purchase.to_dict(), "매입이 등록되었습니다.", 201)


@purchases_bp.put("/<int:purchase_id>")
@require_auth
@require_admin
@business_scope()
def update_purchase_route(business_id: int, purchase_id: int):
    purchase = purchase_service.update_purchase(
        business_id=business_id,
        purchase_id=purchase_id,
        payload=request.get_json(silent=True),
    )
    return ok(purchase.to_dict(), "매입이 수정되었습니다.")


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
@require_admin
@business_scope()
def delete_purchase_route(business_id: int, purchase_id: int):
    purchase_service.delete_purchase(business_id=business_id, purchase_id=purchase_id)
    activity_log_service.log_activity(
        "delete", "purchase", purchase_id,
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(message="매입이 삭제되었습니다.")
