# Overview: Flask API routes for sales documents and their e-signature.

"""
Sales Routes

ROLES:
- admin: full CRUD
- sales_viewer: list, view and sign only (its assigned business)

E-SIGNATURE: POST /<id>/signature takes a multipart JPEG in `signature`.
"""

from flask import Blueprint, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..pagination import paginate, parse_page_args
from ..responses import fail, ok, paginated
from ..services import activity_log_service, sales_service
from ..validation import parse_optional_int


sales_bp = Blueprint(
    "sales",
    __name__,
    url_prefix="/api/businesses/<int:business_id>/sales",
)


@sales_bp.get("")
@require_auth
@business_scope()
def list_sales_route(business_id: int):
    """Query parameters: page, limit, startDate, endDate (YYYY-MM-DD), customerId."""
    page, limit = parse_page_args(request.args)
    query = sales_service.list_sales(
        business_id=business_id,
        start_date=request.args.get("startDate"),
        end_date=request.args.get("endDate"),
        customer_id=parse_optional_int("customerId", request.args.get("customerId")),
    )
    rows, meta = paginate(query, page=page, limit=limit)
    return paginated([s.to_dict() for s in rows], meta)


@sales_bp.get("/<int:sales_id>")
@require_auth
@business_scope()
def get_sales_route(business_id: int, sales_id: int):
    sales = sales_service.get_sales(business_id=business_id, sales_id=sales_id)
    return ok(sales.to_dict())


@sales_bp.post("")
@require_auth
@require_admin
@business_scope()
def create_sales_route(business_id: int):
    sales = sales_service.create_sales(business_id=business_id, payload=request.get_json(silent=True))
    activity_log_service.log_activity(
        "create", "sales", sales.id, f"매출 등록: {sales.total_amount}",
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(sales.to_dict(), "매출이 등록되었습니다.", 201)


@sales_bp.put("/<int:sales_id>")
@require_auth
@require_admin
@business_scope()
def update_sales_route(business_id: int, sales_id: int):
    sales = sales_service.update_sales(
        business_id=business_id,
        sales_id=sales_id,
        payload=request.get_json(silent=True),
    )
    return ok(sales.to_dict(), "매출이 수정되었습니다.")


@sales_bp.delete("/<int:sales_id>")
@require_auth
@require_admin
@business_scope()
def delete_sales_route(business_id: int, sales_id: int):
    sales_service.delete_sales(business_id=business_id, sales_id=sales_id)
    activity_log_service.log_activity(
        "delete", "sales", sales_id,
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(message="매출이 삭제되었습니다.")


@sales_bp.post("/<int:sales_id>/signature")
@require_auth
@business_scope()
def sign_sales_route(business_id: int, sales_id: int):
    file = request.files.get("signature")
    if file is None:
        return fail("서명 이미지를 업로드해주세요.", 400)

    sales = sales_service.sign_sales(business=g.business, sales_id=sales_id, user=g.current_user, file=file)
    activity_log_service.log_activity(
        "sign", "sales", sales.id, "전자서명 완료",
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(sales.to_dict(), "서명이 완료되었습니다.")
