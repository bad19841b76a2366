# Overview: Service-layer operations for one-time passcodes sent over Alimtalk.

"""
OTP Service

Flow:
1. send_otp(email): look up the user's phone, reuse the latest unverified
   row (new code, send_count + 1, attempts reset) or create one, then send
   the code through Alimtalk. Codes expire after 60 seconds.
2. verify_otp(email, code): compare with the latest unverified row. Each
   mismatch increments attempt_count; the fifth mismatch blocks the email
   for 10 minutes (sending and verifying both answer 429 while blocked).

SECURITY: codes come from `secrets`, not `random`. Failed verifications are
written to the security audit trail.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import current_app

from ..error_codes import ApiError
from ..errors import NotFoundError
from ..extensions import db
from ..models import OTP, User
from ..validation import parse_text
from . import alimtalk_service
from .security_service import log_request_event
from erp.time_utils import as_utc_naive, to_utc_z, utcnow


OTP_TTL = timedelta(seconds=60)
MAX_VERIFY_ATTEMPTS = 5
BLOCK_DURATION = timedelta(minutes=10)


def generate_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def latest_unverified(email: str) -> OTP | None:
    return db.session.query(OTP).filter(
        OTP.email == email,
        OTP.verified.is_(False),
    ).order_by(OTP.created_at.desc(), OTP.id.desc()).first()


def _blocked_for(otp: OTP | None) -> int:
    """Seconds left on a block, 0 when not blocked."""
    if otp is None or otp.blocked_until is None:
        return 0
    remaining = (as_utc_naive(otp.blocked_until) - utcnow()).total_seconds()
    return max(0, int(remaining) + 1) if remaining > 0 else 0


def send_otp(email: str | None) -> OTP:
    """
    Issue (or re-issue) a code and deliver it.

    Raises:
        ValidationError: email is not a string
        ApiError: ERR_VAL_002 missing email, ERR_AUTH_008 unknown user,
            ERR_VAL_004 no phone, ERR_OTP_003 blocked, ERR_OTP_004 delivery failed
    """
    email = parse_text("email", email)
    if not email:
        raise ApiError("ERR_VAL_002", "이메일을 입력해주세요.")

    user = db.session.query(User).filter(User.email == email).first()
    if user is None:
        raise ApiError("ERR_AUTH_008", "존재하지 않는 사용자입니다.")
    if not user.phone:
        raise ApiError("ERR_VAL_004", "등록된 전화번호가 없습니다.")

    otp = latest_unverified(email)
    retry_after = _blocked_for(otp)
    if retry_after:
        raise ApiError("ERR_OTP_003", retryAfter=retry_after)

    code = generate_code()
    now = utcnow()
    if otp is not None:
        otp.code = code
        otp.phone = user.phone
        otp.expires_at = now + OTP_TTL
        otp.send_count = (otp.send_count or 0) + 1
        otp.attempt_count = 0
        otp.blocked_until = None
    else:
        otp = OTP(
            email=email,
            phone=user.phone,
            code=code,
            expires_at=now + OTP_TTL,
            send_count=1,
            attempt_count=0,
            verified=False,
        )
        db.session.add(otp)
    db.session.commit()

    if not alimtalk_service.send_otp(user.phone, code):
        current_app.logger.error("OTP delivery failed for user %s", user.id)
        raise ApiError("ERR_OTP_004", "OTP 전송에 실패했습니다.")

    current_app.logger.info("OTP sent for user %s (send #%s)", user.id, otp.send_count)
    return otp


def verify_otp(email: str | None, code: str | None) -> OTP:
    """
    Raises:
        ApiError: ERR_VAL_002 missing input, ERR_OTP_002 expired (expired=True),
            ERR_OTP_001 mismatch (attemptCount), ERR_OTP_003 blocked
        NotFoundError: no code was issued
    """
    email = parse_text("email", email)
    if isinstance(code, int) and not isinstance(code, bool):
        code = str(code)
    code = parse_text("code", code)
    if not email or not code:
        raise ApiError("ERR_VAL_002", "이메일과 OTP 코드를 입력해주세요.")

    otp = latest_unverified(email)
    if otp is None:
        raise NotFoundError("발급된 OTP가 없습니다.")

    retry_after = _blocked_for(otp)
    if retry_after:
        raise ApiError("ERR_OTP_003", retryAfter=retry_after)

    now = utcnow()
    if as_utc_naive(otp.expires_at) < now:
        raise ApiError("ERR_OTP_002", "OTP가 만료되었습니다. 재전송 버튼을 눌러주세요.", expired=True)

    if not secrets.compare_digest(otp.code.encode("utf-8"), code.encode("utf-8")):
        otp.attempt_count = (otp.attempt_count or 0) + 1
        otp.last_attempt_at = now
        blocked = otp.attempt_count >= MAX_VERIFY_ATTEMPTS
        if blocked:
            otp.blocked_until = now + BLOCK_DURATION
        db.session.commit()
        log_request_event("OTP_VERIFY_FAILED", reason=f"attempt {otp.attempt_count}", action=email)
        if blocked:
            raise ApiError("ERR_OTP_003", retryAfter=int(BLOCK_DURATION.total_seconds()))
        raise ApiError("ERR_OTP_001", "OTP 코드가 일치하지 않습니다.", attemptCount=otp.attempt_count)

    otp.verified = True
    otp.last_attempt_at = now
    db.session.commit()
    return otp


def otp_status(email: str) -> dict:
    otp = latest_unverified((email or "").strip())
    if otp is None:
        return {"hasOTP": False}
    return {
        "hasOTP": True,
        "expiresAt": to_utc_z(otp.expires_at),
        "sendCount": otp.send_count,
        "expired": as_utc_naive(otp.expires_at) < utcnow(),
        "blocked": bool(_blocked_for(otp)),
    }


def cleanup_expired(*, older_than: timedelta = timedelta(days=1)) -> int:
    """Delete OTP rows whose expiry is older than the cutoff (verified or not)."""
    cutoff = utcnow() - older_than
    deleted = db.session.query(OTP).filter(OTP.expires_at < cutoff).delete(synchronize_session=False)
    db.session.commit()
    return deleted
