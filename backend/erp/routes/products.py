# Overview: Flask API routes for products (품목) of a business.

from flask import Blueprint, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..pagination import paginate, parse_page_args
from ..responses import ok, paginated
from ..services import activity_log_service, product_service


products_bp = Blueprint(
    "products",
    __name__,
    url_prefix="/api/businesses/<int:business_id>/products",
)


@products_bp.get("")
@require_auth
@require_admin
@business_scope()
def list_products_route(business_id: int):
    """Query parameters: page, limit, search (name, productCode, category), category."""
    page, limit = parse_page_args(request.args)
    query = product_service.list_products(
        business_id=business_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
    )
    rows, meta = paginate(query, page=page, limit=limit)
    return paginated([p.to_dict() for p in rows], meta)


@products_bp.get("/<int:product_id>")
@require_auth
@require_admin
@business_scope()
def get_product_route(business_id: int, product_id: int):
    product = product_service.get_product(business_id=business_id, product_id=product_id)
    return ok(product.to_dict())


@products_bp.post("")
@require_auth
@require_admin
@business_scope()
def create_product_route(business_id: int):
    product = product_service.create_product(business_id=business_id, payload=request.get_json(silent=True))
    activity_log_service.log_activity(
        "create", "product", product.id, f"품목 등록: {product.name}",
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(product.to_dict(), "품목이 등록되었습니다.", 201)


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
@business_scope()
def update_product_route(business_id: int, product_id: int):
    product = product_service.update_product(
        business_id=business_id,
        product_id=product_id,
        payload=request.get_json(silent=True),
    )
    return ok(product.to_dict(), "품목이 수정되었습니다.")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
@business_scope()
def delete_product_route(business_id: int, product_id: int):
    product_service.delete_product(business_id=business_id, product_id=product_id)
    activity_log_service.log_activity(
        "delete", "product", product_id,
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(message="품목이 삭제되었습니다.")
