# Overview: Flask API routes for business settings, data export, backup and destructive operations.

"""
Settings Routes

GET /security/<email> is public: the login screen asks it whether an OTP
step is needed before any token exists. Everything else needs a token and
access to the business.

SECURITY: reset-data and delete-account are owner only and require the
exact Korean confirmation text in `confirmText`.
"""

import json

from flask import Blueprint, current_app, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..responses import ok
from ..services import settings_service, token_service
from ..time_utils import today
from .excel import xlsx_response


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/security/<email>")
def security_settings_route(email: str):
    return ok(settings_service.security_settings_for_email(email))


@settings_bp.get("/<int:business_id>")
@require_auth
@require_admin
@business_scope()
def get_settings_route(business_id: int):
    return ok(settings_service.get_settings(business_id))


@settings_bp.put("/<int:business_id>")
@require_auth
@require_admin
@business_scope()
def update_settings_route(business_id: int):
    """Body: flat object of setting key -> value, e.g. {"sessionTimeout": "8h", "twoFactorAuth": true}"""
    settings = settings_service.update_settings(business_id, request.get_json(silent=True))
    return ok(settings, "설정이 저장되었습니다.")


@settings_bp.get("/<int:business_id>/export/<kind>")
@require_auth
@require_admin
@business_scope()
def export_route(business_id: int, kind: str):
    """kind: customers, products, transactions or all"""
    data, filename = settings_service.export_data(business_id, kind)
    return xlsx_response(data, filename)


@settings_bp.get("/<int:business_id>/backup")
@require_auth
@require_admin
@business_scope()
def backup_route(business_id: int):
    body = json.dumps(settings_service.backup(business_id), ensure_ascii=False, indent=2)
    filename = f"backup_{business_id}_{today().isoformat()}.json"
    return current_app.response_class(
        body,
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@settings_bp.post("/<int:business_id>/restore")
@require_auth
@require_admin
@business_scope(owner_only=True)
def restore_route(business_id: int):
    """Replace the business's data with a backup produced by GET /backup. All or nothing."""
    summary = settings_service.restore(business_id, request.get_json(silent=True))
    current_app.logger.info("Data restored for business %s by user %s", business_id, g.current_user.id)
    return ok(message="데이터가 성공적으로 복원되었습니다.", summary=summary)


@settings_bp.post("/<int:business_id>/reset-data")
@require_auth
@business_scope(owner_only=True)
def reset_data_route(business_id: int):
    data = request.get_json(silent=True) or {}
    settings_service.reset_data(user=g.current_user, business=g.business, confirm_text=data.get("confirmText"))
    return ok(message="모든 데이터가 초기화되었습니다.")


@settings_bp.post("/<int:business_id>/delete-account")
@require_auth
@business_scope(owner_only=True)
def delete_account_route(business_id: int):
    data = request.get_json(silent=True) or {}
    removed_user = settings_service.delete_account(
        user=g.current_user,
        business=g.business,
        confirm_text=data.get("confirmText"),
    )
    response, status = ok(message="계정이 삭제되었습니다.")
    if removed_user:
        token_service.clear_cookies(response)
    return response, status
