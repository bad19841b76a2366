# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

MULTI-TENANT: Signup creates the user and its first Business in one
transaction. An admin owns businesses; a sales_viewer is bound to one.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS)
- Minimum 8 characters, upper/lower/digit/special required
- Common passwords, 3+ repeated characters and 4+ character sequences rejected
- Tokens are issued separately (see token_service.py)
- Password reset tokens are signed with the session secret, valid for 5 minutes,
  and stop working once the password changes
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..extensions import db
from ..models import Business, User
from . import upload_service
from ..validation import (
    BUSINESS_NUMBER_PATTERN,
    EMAIL_PATTERN,
    PHONE_PATTERN,
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    normalize_business_number,
    validate_payload,
)
from erp.time_utils import utcnow


COMMON_PASSWORDS = (
    "password", "123456", "123456789", "qwerty", "abc123", "password123",
    "111111", "123123", "admin", "letmein", "welcome", "monkey",
    "1234567890", "qwertyuiop", "asdfghjkl", "zxcvbnm",
)

_SEQUENCES = ("abcdefghijklmnopqrstuvwxyz", "0123456789", "qwertyuiop", "asdfghjkl", "zxcvbnm")

RESET_TOKEN_SALT = "password-reset"

ACCOUNT_NOT_FOUND_MESSAGE = "입력하신 정보와 일치하는 계정을 찾을 수 없습니다."


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


class InvalidResetTokenError(Exception):
    """Reset token is malformed, expired or already used."""
    pass


def _has_sequence(lowered: str) -> bool:
    for seq in _SEQUENCES:
        for candidate in (seq, seq[::-1]):
            for i in range(len(candidate) - 3):
                if candidate[i:i + 4] in lowered:
                    return True
    return False


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter, one digit
    - At least one special character
    - No common password, no character repeated 3+ times in a row,
      no 4+ character alphabetic/numeric/keyboard run

    Raises PasswordValidationError listing every unmet rule.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("비밀번호를 입력해주세요.", errors=["비밀번호를 입력해주세요."])

    errors = []
    if len(password) < 8:
        errors.append("비밀번호는 최소 8자 이상이어야 합니다")
    if not re.search(r"[A-Z]", password):
        errors.append("대문자를 포함해야 합니다")
    if not re.search(r"[a-z]", password):
        errors.append("소문자를 포함해야 합니다")
    if not re.search(r"\d", password):
        errors.append("숫자를 포함해야 합니다")
    if not re.search(r"[!@#$%^&*(),.?\":{}|<>\-_=+\[\];'/\\`~]", password):
        errors.append("특수문자를 포함해야 합니다")

    lowered = password.lower()
    if any(common in lowered for common in COMMON_PASSWORDS):
        errors.append("흔히 사용되는 비밀번호는 사용할 수 없습니다")
    if re.search(r"(.)\1{2,}", password):
        errors.append("같은 문자를 3번 이상 반복할 수 없습니다")
    if _has_sequence(lowered):
        errors.append("연속된 문자나 숫자를 4자 이상 사용할 수 없습니다")

    if errors:
        raise PasswordValidationError(errors[0], errors=errors)


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not isinstance(password, str) or not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


BUSINESS_INFO_POLICY = ModelValidationPolicy(
    writable_fields={
        "businessNumber", "companyName", "representative", "businessType",
        "businessItem", "address", "phone", "fax",
    },
    required_on_create={"businessNumber", "companyName", "representative"},
    patterns={
        "businessNumber": BUSINESS_NUMBER_PATTERN,
        "phone": PHONE_PATTERN,
        "fax": PHONE_PATTERN,
    },
)


def _validate_signup(payload: dict) -> tuple[dict, dict]:
    errors: list[str] = []

    email = (payload.get("email") or "").strip() if isinstance(payload.get("email"), str) else ""
    if not email or not re.fullmatch(EMAIL_PATTERN, email):
        errors.append("email must be a valid email")

    name = payload.get("name")
    if not isinstance(name, str) or len(name.strip()) < 2:
        errors.append("name must be at least 2 characters")

    phone = payload.get("phone")
    if not isinstance(phone, str) or not phone.strip() or not re.fullmatch(PHONE_PATTERN, phone):
        errors.append("phone has an invalid format")

    try:
        validate_password_strength(payload.get("password"))
    except PasswordValidationError as e:
        errors.extend(e.errors)

    business_info = payload.get("businessInfo")
    business_patch: dict = {}
    if not isinstance(business_info, dict):
        errors.append("businessInfo is required")
    else:
        try:
            business_patch = validate_payload(
                model=Business,
                payload=business_info,
                policy=BUSINESS_INFO_POLICY,
                partial=False,
            )
        except ValidationError as e:
            errors.extend(e.errors)

    if errors:
        raise ValidationError(errors=errors)

    user_fields = {"email": email, "name": name.strip(), "phone": phone.strip()}
    return user_fields, business_patch


def signup(*, payload: dict) -> tuple[User, Business]:
    """
    Create a user and its first business.

    Duplicate email or business number is rejected before anything is written.

    Raises:
        ValidationError: malformed input or weak password
        ConflictError: email or business number already registered
    """
    user_fields, business_patch = _validate_signup(payload or {})

    if db.session.query(User).filter(User.email == user_fields["email"]).first():
        raise ConflictError("이미 사용 중인 이메일입니다.")

    business_number = normalize_business_number(business_patch["business_number"])
    if db.session.query(Business).filter(Business.business_number == business_number).first():
        raise ConflictError("이미 등록된 사업자번호입니다.")

    user = User(
        email=user_fields["email"],
        password_hash=hash_password(payload["password"]),
        name=user_fields["name"],
        phone=user_fields["phone"],
    )
    db.session.add(user)
    db.session.flush()

    business_patch["business_number"] = business_number
    business = Business(user_id=user.id, **business_patch)
    db.session.add(business)
    db.session.commit()

    current_app.logger.info("Signup completed for user %s", user.id)
    return user, business


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.

    WHY: Central authentication function. All login flows go through here.
    """
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def session_user_payload(user: User) -> dict:
    """User block returned by login and profile: the user plus the businesses it may open."""
    from .tenant_service import get_user_businesses

    data = user.to_dict()
    data["businesses"] = [b.to_dict() for b in get_user_businesses(user)]
    return data


def update_profile(user: User, *, payload: dict) -> User:
    """Name and phone only; blank values keep the current ones."""
    payload = payload or {}
    errors = []

    name = payload.get("name")
    if name:
        if not isinstance(name, str) or len(name.strip()) < 2:
            errors.append("name must be at least 2 characters")
    phone = payload.get("phone")
    if phone:
        if not isinstance(phone, str) or not re.fullmatch(PHONE_PATTERN, phone):
            errors.append("phone has an invalid format")
    if errors:
        raise ValidationError(errors=errors)

    if name:
        user.name = name.strip()
    if phone:
        user.phone = phone.strip()
    db.session.commit()
    return user


def change_password(user: User, *, current_password: str, new_password: str) -> None:
    """
    Replace the password after proving knowledge of the current one.

    Raises:
        ValidationError: current password wrong, or new password too weak
    """
    if not current_password or not new_password:
        raise ValidationError("현재 비밀번호와 새 비밀번호를 입력해주세요.")
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("현재 비밀번호가 올바르지 않습니다.")
    if current_password == new_password:
        raise ValidationError("새 비밀번호는 현재 비밀번호와 달라야 합니다.")
    validate_password_strength(new_password)

    user.password_hash = hash_password(new_password)
    db.session.commit()


def set_avatar(user: User, filename: str) -> User:
    """Point the user at a freshly stored avatar file and remove the previous one."""
    old = user.avatar
    user.avatar = filename
    db.session.commit()

    if old and old != filename:
        upload_service.remove("avatars", old)
    return user


def _digits(value) -> str:
    return re.sub(r"[^0-9]", "", value or "") if isinstance(value, str) else ""


def mask_email(email: str) -> str:
    """abcdef@example.com -> abc***@example.com (short local parts keep one character)."""
    local, _, domain = email.partition("@")
    visible = local[:3] if len(local) > 3 else local[:1]
    return f"{visible}***@{domain}"


def _match_business(businesses, company_name: str, business_number: str, phone: str) -> Business | None:
    matches = [
        b for b in businesses
        if b.company_name == company_name and b.business_number == business_number
    ]
    if not matches:
        return None
    if phone:
        for b in matches:
            if b.phone and _digits(b.phone) == phone:
                return b
    return matches[0]


def find_username(*, company_name: str, business_number: str, phone: str | None = None) -> dict:
    """
    Look up the login email of a business owner.

    Returns the masked email only.

    Raises:
        ValidationError: company name or business number missing
        LookupError: nothing matches
    """
    if not company_name or not business_number:
        raise ValidationError("회사명과 사업자등록번호를 입력해주세요.")

    businesses = db.session.query(Business).filter(
        Business.company_name == company_name,
        Business.business_number == _digits(business_number),
    ).order_by(Business.id.asc()).all()

    business = _match_business(businesses, company_name, _digits(business_number), _digits(phone))
    if business is None or business.owner is None:
        raise LookupError(ACCOUNT_NOT_FOUND_MESSAGE)

    return {"email": mask_email(business.owner.email), "name": business.owner.name}


def _reset_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=RESET_TOKEN_SALT)


def verify_password_reset(
    *,
    email: str,
    company_name: str,
    business_number: str,
    phone: str | None = None,
) -> str:
    """
    Confirm ownership details and issue a short-lived reset token.

    SECURITY: The token embeds a fragment of the current password hash, so it
    is single-use: once the password changes the token no longer verifies.

    Raises:
        ValidationError: missing fields
        LookupError: no user/business matches
    """
    if not email or not company_name or not business_number:
        raise ValidationError("이메일, 회사명, 사업자등록번호를 입력해주세요.")

    user = db.session.query(User).filter(User.email == email).first()
    if not user:
        current_app.logger.warning("Password reset requested for unknown email")
        raise LookupError(ACCOUNT_NOT_FOUND_MESSAGE)

    business = _match_business(user.businesses, company_name, _digits(business_number), _digits(phone))
    if business is None:
        current_app.logger.warning("Password reset details did not match for user %s", user.id)
        raise LookupError(ACCOUNT_NOT_FOUND_MESSAGE)

    return _reset_serializer().dumps({"userId": user.id, "ph": user.password_hash[-12:]})


def reset_password(*, reset_token: str, new_password: str) -> User:
    """
    Set a new password using a token from verify_password_reset.

    Raises:
        ValidationError: missing fields or weak password
        InvalidResetTokenError: bad, expired or already used token
    """
    if not reset_token or not new_password:
        raise ValidationError("필수 정보가 누락되었습니다.")
    validate_password_strength(new_password)

    max_age = current_app.config.get("PASSWORD_RESET_TOKEN_MINUTES", 5) * 60
    try:
        data = _reset_serializer().loads(reset_token, max_age=max_age)
    except (SignatureExpired, BadSignature):
        raise InvalidResetTokenError("유효하지 않거나 만료된 토큰입니다.")

    user = db.session.get(User, data.get("userId"))
    if not user or user.password_hash[-12:] != data.get("ph"):
        raise InvalidResetTokenError("유효하지 않거나 만료된 토큰입니다.")

    user.password_hash = hash_password(new_password)
    db.session.commit()
    current_app.logger.info("Password reset for user %s", user.id)
    return user


def is_email_available(email: str) -> bool:
    return db.session.query(User.id).filter(User.email == email).first() is None
