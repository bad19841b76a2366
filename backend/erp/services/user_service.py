# Overview: Service-layer operations for sub-users of a business.

"""
User Service

An owner (the admin whose Business.user_id matches) manages the accounts
bound to that business through User.business_id: sales_viewer accounts and
additional admins. The owner's own account is never listed or changed here.
"""

from __future__ import annotations

import re

from ..errors import NotFoundError
from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES
from ..validation import EMAIL_PATTERN, PHONE_PATTERN, ConflictError, ValidationError
from .auth_service import PasswordValidationError, hash_password, validate_password_strength


USER_NOT_FOUND_MESSAGE = "사용자를 찾을 수 없습니다."
DUPLICATE_EMAIL_MESSAGE = "이미 사용 중인 이메일입니다."


def _validate(payload: dict, *, partial: bool) -> dict:
    errors: list[str] = []
    patch: dict = {}

    def present(key: str) -> bool:
        return not partial or key in payload

    if present("email"):
        email = payload.get("email")
        if not isinstance(email, str) or not re.fullmatch(EMAIL_PATTERN, email.strip()):
            errors.append("email must be a valid email")
        else:
            patch["email"] = email.strip()

    if present("name"):
        name = payload.get("name")
        if not isinstance(name, str) or len(name.strip()) < 2:
            errors.append("name must be at least 2 characters")
        else:
            patch["name"] = name.strip()

    if "phone" in payload:
        phone = payload.get("phone") or ""
        if not isinstance(phone, str) or (phone.strip() and not re.fullmatch(PHONE_PATTERN, phone)):
            errors.append("phone has an invalid format")
        else:
            patch["phone"] = phone.strip()

    if present("role"):
        role = payload.get("role")
        if role not in USER_ROLES:
            errors.append("role must be one of: admin, sales_viewer")
        else:
            patch["role"] = role

    if partial and "isActive" in payload:
        if not isinstance(payload["isActive"], bool):
            errors.append("isActive must be a boolean")
        else:
            patch["is_active"] = payload["isActive"]

    if not partial:
        try:
            validate_password_strength(payload.get("password"))
        except PasswordValidationError as e:
            errors.extend(e.errors)

    if errors:
        raise ValidationError(errors=errors)
    return patch


def list_users(*, business_id: int) -> list[User]:
    return db.session.query(User).filter(User.business_id == business_id).order_by(
        User.created_at.asc(), User.id.asc()
    ).all()


def get_user(*, business_id: int, user_id: int) -> User:
    user = db.session.query(User).filter(User.id == user_id, User.business_id == business_id).first()
    if user is None:
        raise NotFoundError(USER_NOT_FOUND_MESSAGE)
    return user


def _ensure_email_free(email: str, exclude_id: int | None = None) -> None:
    query = db.session.query(User).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE)


def create_user(*, business_id: int, payload: dict) -> User:
    """
    Raises:
        ValidationError: bad fields or weak password
        ConflictError: email already registered
    """
    payload = payload or {}
    patch = _validate(payload, partial=False)
    _ensure_email_free(patch["email"])
    user = User(
        password_hash=hash_password(payload["password"]),
        business_id=business_id,
        is_active=True,
        phone=patch.pop("phone", ""),
        **patch,
    )
    db.session.add(user)
    db.session.commit()
    return user


def update_user(*, business_id: int, user_id: int, payload: dict) -> User:
    user = get_user(business_id=business_id, user_id=user_id)
    patch = _validate(payload or {}, partial=True)
    if "email" in patch and patch["email"] != user.email:
        _ensure_email_free(patch["email"], exclude_id=user.id)
    for key, value in patch.items():
        setattr(user, key, value)
    db.session.commit()
    return user


def delete_user(*, business_id: int, user_id: int) -> None:
    db.session.delete(get_user(business_id=business_id, user_id=user_id))
    db.session.commit()


def toggle_status(*, business_id: int, user_id: int) -> User:
    user = get_user(business_id=business_id, user_id=user_id)
    user.is_active = not user.is_active
    db.session.commit()
    return user
