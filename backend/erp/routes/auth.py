# Overview: Flask API routes for signup, login, session tokens and account recovery.

"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on signup, change and reset
- Login throttling per email (LOGIN_FAILED security events) and per IP
  (rate_limit_service)
- Generic credential errors: a wrong password and an unknown email look
  the same to the client
- HttpOnly authToken/refreshToken cookies; Authorization header accepted
  as fallback
"""

import re

from flask import Blueprint, current_app, g, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException, NoAuthorizationError
from jwt.exceptions import PyJWTError

from ..decorators import require_auth
from ..error_codes import ApiError
from ..extensions import db
from ..models import User
from ..responses import fail, ok
from ..services import alimtalk_service, auth_service, login_throttle_service, token_service, upload_service
from ..services.auth_service import InvalidResetTokenError
from ..validation import EMAIL_PATTERN, parse_text


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

INVALID_CREDENTIALS_MESSAGE = "이메일 또는 비밀번호가 올바르지 않습니다."


def _with_tokens(body_response, user: User, business_id: int | None = None):
    response, status = body_response
    tokens = token_service.issue_tokens(user, business_id)
    token_service.attach_cookies(response, tokens)
    return response, status


@auth_bp.post("/signup")
def signup_route():
    """
    Create an account and its first business.

    Request body:
    {
        "email", "password", "name", "phone",
        "businessInfo": {"businessNumber": "123-45-67890", "companyName", "representative",
                         "businessType", "businessItem", "address", "phone", "fax"}
    }
    """
    user, business = auth_service.signup(payload=request.get_json(silent=True))

    if not alimtalk_service.send_welcome(user.phone, user.name, business.company_name):
        current_app.logger.info("Welcome message not delivered for user %s", user.id)

    tokens = token_service.issue_tokens(user, business.id)
    response, status = ok(
        {
            "user": auth_service.session_user_payload(user),
            "business": business.to_dict(),
            "token": tokens.access_token,
        },
        "회원가입이 완료되었습니다.",
        201,
    )
    token_service.attach_cookies(response, tokens)
    return response, status


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email and password.

    SECURITY:
    - Checks for lockout before verifying the password
    - Records failed attempts for throttling
    - Records successful logins for the audit trail
    """
    data = request.get_json(silent=True) or {}
    email = parse_text("email", data.get("email"))
    password = parse_text("password", data.get("password"), strip=False)
    if not email or not password:
        return fail("이메일과 비밀번호를 입력해주세요.", 400)

    is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
    if is_locked:
        raise ApiError("ERR_RATE_002", locked=True, retryAfter=seconds_remaining)

    user = auth_service.authenticate(email, password)
    if not user:
        login_throttle_service.record_failed_attempt(email)
        raise ApiError("ERR_AUTH_001", INVALID_CREDENTIALS_MESSAGE)

    login_throttle_service.record_successful_login(user)
    tokens = token_service.issue_tokens(user)
    response, status = ok(
        {"token": tokens.access_token, "user": auth_service.session_user_payload(user)},
        "로그인되었습니다.",
    )
    token_service.attach_cookies(response, tokens)
    return response, status


@auth_bp.post("/refresh-token")
def refresh_token_route():
    """Exchange the refresh cookie for a new token pair. 401 when absent, 403 when invalid."""
    try:
        verify_jwt_in_request(refresh=True)
    except NoAuthorizationError:
        raise ApiError("ERR_AUTH_004", "리프레시 토큰이 필요합니다.")
    except (JWTExtendedException, PyJWTError):
        raise ApiError("ERR_AUTH_012")

    try:
        user = db.session.get(User, int(get_jwt_identity()))
    except (TypeError, ValueError):
        user = None
    if user is None or not user.is_active:
        raise ApiError("ERR_AUTH_012")

    return _with_tokens(ok(message="토큰이 갱신되었습니다."), user)


@auth_bp.post("/logout")
def logout_route():
    response, status = ok(message="로그아웃되었습니다.")
    token_service.clear_cookies(response)
    return response, status


@auth_bp.get("/check-email")
def check_email_route():
    email = (request.args.get("email") or "").strip()
    if not email:
        return fail("이메일을 입력해주세요.", 400)
    if not re.fullmatch(EMAIL_PATTERN, email):
        return fail("올바른 이메일 형식이 아닙니다.", 400, available=False)

    available = auth_service.is_email_available(email)
    return ok(
        {"available": available},
        "사용 가능한 이메일입니다." if available else "이미 사용 중인 이메일입니다.",
    )


@auth_bp.get("/profile")
@require_auth
def get_profile_route():
    return ok(auth_service.session_user_payload(g.current_user))


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    user = auth_service.update_profile(g.current_user, payload=request.get_json(silent=True))
    return ok(user.to_dict(), "프로필이 업데이트되었습니다.")


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    auth_service.change_password(
        g.current_user,
        current_password=parse_text("currentPassword", data.get("currentPassword"), strip=False),
        new_password=parse_text("newPassword", data.get("newPassword"), strip=False),
    )
    return ok(message="비밀번호가 변경되었습니다.")


@auth_bp.post("/upload-avatar")
@require_auth
def upload_avatar_route():
    """Multipart field `avatar`, JPEG only."""
    file = request.files.get("avatar")
    if file is None:
        return fail("이미지 파일을 선택해주세요.", 400)

    filename = upload_service.save_avatar(g.current_user.id, file)
    user = auth_service.set_avatar(g.current_user, filename)
    return ok({"avatar": user.avatar_url}, "프로필 사진이 업데이트되었습니다.")


@auth_bp.post("/find-username")
def find_username_route():
    data = request.get_json(silent=True) or {}
    try:
        result = auth_service.find_username(
            company_name=parse_text("companyName", data.get("companyName")),
            business_number=parse_text("businessNumber", data.get("businessNumber")),
            phone=parse_text("phone", data.get("phone")) or None,
        )
    except LookupError as e:
        return fail(str(e), 404)
    return ok(result)


@auth_bp.post("/verify-password-reset")
def verify_password_reset_route():
    data = request.get_json(silent=True) or {}
    try:
        token = auth_service.verify_password_reset(
            email=parse_text("email", data.get("email")),
            company_name=parse_text("companyName", data.get("companyName")),
            business_number=parse_text("businessNumber", data.get("businessNumber")),
            phone=parse_text("phone", data.get("phone")) or None,
        )
    except LookupError as e:
        return fail(str(e), 404)
    return ok({"resetToken": token}, "본인 확인이 완료되었습니다.")


@auth_bp.post("/reset-password")
def reset_password_route():
    data = request.get_json(silent=True) or {}
    try:
        auth_service.reset_password(
            reset_token=parse_text("resetToken", data.get("resetToken")),
            new_password=parse_text("newPassword", data.get("newPassword"), strip=False),
        )
    except InvalidResetTokenError as e:
        return fail(str(e), 400)
    return ok(message="비밀번호가 성공적으로 변경되었습니다.")
