# Overview: Flask API routes for the caller's in-app notifications.

"""
Notification Routes

Every route is scoped to g.current_user; another user's notification
answers 404.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..responses import ok
from ..services import notification_service
from ..services.tenant_service import require_business_access
from ..validation import parse_optional_int


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def _parse_bool(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    return value.strip().lower() == "true"


@notifications_bp.post("")
@require_auth
def create_notification_route():
    """Body: {type, title, message, priority?, link?, metadata?, businessId?}"""
    payload = dict(request.get_json(silent=True) or {})
    business_id = parse_optional_int("businessId", payload.pop("businessId", None))
    if business_id is not None:
        require_business_access(business_id, g.current_user)
    notification = notification_service.create_from_payload(
        user=g.current_user, business_id=business_id, payload=payload,
    )
    return ok(notification.to_dict(), "알림이 생성되었습니다.", 201)


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """Query parameters: limit (default 20, max 100), offset, isRead (true/false)."""
    limit = min(max(request.args.get("limit", default=20, type=int), 1), 100)
    offset = max(request.args.get("offset", default=0, type=int), 0)
    query = notification_service.list_notifications(
        user_id=g.current_user.id,
        is_read=_parse_bool(request.args.get("isRead")),
    )
    total = query.order_by(None).count()
    rows = query.offset(offset).limit(limit).all()
    return ok(
        [n.to_dict() for n in rows],
        pagination={"total": total, "limit": limit, "offset": offset, "hasMore": offset + len(rows) < total},
    )


@notifications_bp.get("/unread-count")
@require_auth
def unread_count_route():
    return ok({"count": notification_service.unread_count(user_id=g.current_user.id)})


@notifications_bp.patch("/read-all")
@require_auth
def mark_all_read_route():
    updated = notification_service.mark_all_read(user_id=g.current_user.id)
    return ok({"updated": updated}, "모든 알림을 읽음 처리했습니다.")


@notifications_bp.patch("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    notification = notification_service.mark_read(user_id=g.current_user.id, notification_id=notification_id)
    return ok(notification.to_dict())


@notifications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification_route(notification_id: int):
    notification_service.delete_notification(user_id=g.current_user.id, notification_id=notification_id)
    return ok(message="알림이 삭제되었습니다.")


@notifications_bp.delete("")
@require_auth
def delete_all_route():
    deleted = notification_service.delete_all(user_id=g.current_user.id)
    return ok({"deleted": deleted}, "모든 알림이 삭제되었습니다.")
