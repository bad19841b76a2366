# Overview: Flask API routes for one-time login codes delivered over Alimtalk.

"""
OTP Routes

Codes expire after 60 seconds. Five wrong codes block the email for ten
minutes (429 with retryAfter).
"""

from flask import Blueprint, request

from ..responses import ok
from ..services import otp_service
from ..time_utils import to_utc_z


otp_bp = Blueprint("otp", __name__, url_prefix="/api/otp")


@otp_bp.post("/send")
def send_otp_route():
    data = request.get_json(silent=True) or {}
    otp = otp_service.send_otp(data.get("email"))
    return ok(
        {"expiresAt": to_utc_z(otp.expires_at), "sendCount": otp.send_count},
        "인증번호가 전송되었습니다.",
    )


@otp_bp.post("/verify")
def verify_otp_route():
    data = request.get_json(silent=True) or {}
    otp_service.verify_otp(data.get("email"), data.get("code"))
    return ok({"verified": True}, "인증이 완료되었습니다.")


@otp_bp.get("/status/<email>")
def otp_status_route(email: str):
    return ok(otp_service.otp_status(email))
