# Overview: Flask API routes for customers (거래처) of a business.

"""
Customer Routes

MULTI-TENANT: Every route is scoped to /api/businesses/<business_id>; the
business is checked by business_scope before the service runs.
"""

from flask import Blueprint, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..pagination import paginate, parse_page_args
from ..responses import ok, paginated
from ..services import activity_log_service, customer_service


customers_bp = Blueprint(
    "customers",
    __name__,
    url_prefix="/api/businesses/<int:business_id>/customers",
)


@customers_bp.get("")
@require_auth
@require_admin
@business_scope()
def list_customers_route(business_id: int):
    """
    Query parameters:
    - page, limit
    - search: name or business number
    - type: 매출처/매입처/기타 (or sales/purchase/other)
    - sortField: name, customerCode, businessNumber, customerType, createdAt, updatedAt
    - sortOrder: asc/desc
    """
    page, limit = parse_page_args(request.args)
    query = customer_service.list_customers(
        business_id=business_id,
        search=request.args.get("search"),
        customer_type=request.args.get("type"),
        sort_field=request.args.get("sortField"),
        sort_order=request.args.get("sortOrder"),
    )
    rows, meta = paginate(query, page=page, limit=limit)
    return paginated([c.to_dict() for c in rows], meta)


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_admin
@business_scope()
def get_customer_route(business_id: int, customer_id: int):
    customer = customer_service.get_customer(business_id=business_id, customer_id=customer_id)
    return ok(customer.to_dict())


@customers_bp.post("")
@require_auth
@require_admin
@business_scope()
def create_customer_route(business_id: int):
    customer = customer_service.create_customer(business_id=business_id, payload=request.get_json(silent=True))
    activity_log_service.log_activity(
        "create", "customer", customer.id, f"거래처 등록: {customer.name}",
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(customer.to_dict(), "거래처가 등록되었습니다.", 201)


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_admin
@business_scope()
def update_customer_route(business_id: int, customer_id: int):
    customer = customer_service.update_customer(
        business_id=business_id,
        customer_id=customer_id,
        payload=request.get_json(silent=True),
    )
    return ok(customer.to_dict(), "거래처가 수정되었습니다.")


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_admin
@business_scope()
def delete_customer_route(business_id: int, customer_id: int):
    customer_service.delete_customer(business_id=business_id, customer_id=customer_id)
    activity_log_service.log_activity(
        "delete", "customer", customer_id,
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(message="거래처가 삭제되었습니다.")
