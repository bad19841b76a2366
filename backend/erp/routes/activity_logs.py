# Overview: Flask API routes for the user-visible activity log.

from flask import Blueprint, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..responses import ok
from ..services import activity_log_service
from ..services.tenant_service import require_business_access
from ..validation import parse_optional_int


activity_logs_bp = Blueprint("activity_logs", __name__, url_prefix="/api/activity-logs")


def _limit(default: int) -> int:
    return min(max(request.args.get("limit", default=default, type=int), 1), 500)


def _offset() -> int:
    return max(request.args.get("offset", default=0, type=int), 0)


@activity_logs_bp.post("")
@require_auth
def create_log_route():
    """Body: {actionType, entity, entityId?, description?, metadata?, businessId?}"""
    payload = request.get_json(silent=True) or {}
    business_id = parse_optional_int("businessId", payload.get("businessId"))
    if business_id is not None:
        require_business_access(business_id, g.current_user)
    log = activity_log_service.create_log(user=g.current_user, business_id=business_id, payload=payload)
    return ok(log.to_dict(), status=201)


@activity_logs_bp.get("/user")
@require_auth
def user_logs_route():
    limit, offset = _limit(50), _offset()
    query = activity_log_service.list_user_logs(user_id=g.current_user.id)
    rows, total = activity_log_service.slice_logs(query, limit=limit, offset=offset)
    return ok([r.to_dict() for r in rows], pagination={"total": total, "limit": limit, "offset": offset})


@activity_logs_bp.get("/recent")
@require_auth
def recent_logs_route():
    query = activity_log_service.list_user_logs(user_id=g.current_user.id)
    rows, _ = activity_log_service.slice_logs(query, limit=_limit(10), offset=0)
    return ok([r.to_dict() for r in rows])


@activity_logs_bp.get("/business/<int:business_id>")
@require_auth
@require_admin
@business_scope()
def business_logs_route(business_id: int):
    """Query parameters: limit (default 100), offset, actionType, entity."""
    limit, offset = _limit(100), _offset()
    query = activity_log_service.list_business_logs(
        business_id=business_id,
        action_type=request.args.get("actionType"),
        entity=request.args.get("entity"),
    )
    rows, total = activity_log_service.slice_logs(query, limit=limit, offset=offset)
    return ok([r.to_dict() for r in rows], pagination={"total": total, "limit": limit, "offset": offset})


@activity_logs_bp.delete("/<int:log_id>")
@require_auth
def delete_log_route(log_id: int):
    activity_log_service.delete_log(user=g.current_user, log_id=log_id)
    return ok(message="활동 로그가 삭제되었습니다.")
