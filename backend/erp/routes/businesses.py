# Overview: Flask API routes for business (tenant) records.

"""
Business Routes

MULTI-TENANT: A business is the tenant. Listing shows only what the caller
may open; every other route goes through require_business_access, so a
business owned by someone else answers 404 exactly like a missing one.

sales_viewer accounts may read their assigned business but not change it.
"""

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..pagination import paginate, parse_page_args
from ..responses import ok, paginated
from ..services import business_service


businesses_bp = Blueprint("businesses", __name__, url_prefix="/api/businesses")


@businesses_bp.get("")
@require_auth
def list_businesses_route():
    """Query parameters: page, limit, search (company name, business number, representative)."""
    page, limit = parse_page_args(request.args)
    query = business_service.list_businesses(user=g.current_user, search=request.args.get("search"))
    rows, meta = paginate(query, page=page, limit=limit)
    return paginated([b.to_dict() for b in rows], meta)


@businesses_bp.get("/validate/<business_number>")
@require_auth
def validate_business_number_route(business_number: str):
    return ok(business_service.validate_business_number(business_number))


@businesses_bp.get("/<int:business_id>")
@require_auth
def get_business_route(business_id: int):
    business = business_service.get_business(user=g.current_user, business_id=business_id)
    return ok(business.to_dict())


@businesses_bp.post("")
@require_auth
@require_admin
def create_business_route():
    business = business_service.create_business(user=g.current_user, payload=request.get_json(silent=True))
    return ok(business.to_dict(), "사업자가 성공적으로 등록되었습니다.", 201)


@businesses_bp.put("/<int:business_id>")
@require_auth
@require_admin
def update_business_route(business_id: int):
    business = business_service.update_business(
        user=g.current_user,
        business_id=business_id,
        payload=request.get_json(silent=True),
    )
    return ok(business.to_dict(), "사업자 정보가 성공적으로 수정되었습니다.")


@businesses_bp.delete("/<int:business_id>")
@require_auth
@require_admin
def delete_business_route(business_id: int):
    business_service.delete_business(user=g.current_user, business_id=business_id)
    return ok(message="사업자가 성공적으로 삭제되었습니다.")
