# Overview: Flask API routes for sub-user accounts of a business.

"""
User Management Routes

MULTI-TENANT: Sub-users (sales_viewer or admin) are bound to one business
through users.business_id. Only the business owner manages them.
"""

from flask import Blueprint, g, request

from ..decorators import business_scope, require_auth
from ..responses import ok
from ..services import activity_log_service, user_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users/<int:business_id>/users")


@users_bp.get("")
@require_auth
@business_scope(owner_only=True)
def list_users_route(business_id: int):
    return ok([u.to_dict() for u in user_service.list_users(business_id=business_id)])


@users_bp.post("")
@require_auth
@business_scope(owner_only=True)
def create_user_route(business_id: int):
    """Body: {email, password, name, phone?, role: sales_viewer|admin}"""
    user = user_service.create_user(business_id=business_id, payload=request.get_json(silent=True))
    activity_log_service.log_activity(
        "create", "user", user.id, f"사용자 등록: {user.email}",
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(user.to_dict(), "사용자가 등록되었습니다.", 201)


@users_bp.put("/<int:user_id>")
@require_auth
@business_scope(owner_only=True)
def update_user_route(business_id: int, user_id: int):
    user = user_service.update_user(business_id=business_id, user_id=user_id, payload=request.get_json(silent=True))
    return ok(user.to_dict(), "사용자 정보가 수정되었습니다.")


@users_bp.delete("/<int:user_id>")
@require_auth
@business_scope(owner_only=True)
def delete_user_route(business_id: int, user_id: int):
    user_service.delete_user(business_id=business_id, user_id=user_id)
    activity_log_service.log_activity(
        "delete", "user", user_id,
        user_id=g.current_user.id, business_id=business_id,
    )
    return ok(message="사용자가 삭제되었습니다.")


@users_bp.patch("/<int:user_id>/toggle-status")
@require_auth
@business_scope(owner_only=True)
def toggle_status_route(business_id: int, user_id: int):
    user = user_service.toggle_status(business_id=business_id, user_id=user_id)
    message = "사용자가 활성화되었습니다." if user.is_active else "사용자가 비활성화되었습니다."
    return ok(user.to_dict(), message)
