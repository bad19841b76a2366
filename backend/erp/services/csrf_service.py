# Overview: Service-layer operations for CSRF token issue and verification.

"""
CSRF protection (double-submit token).

GET /api/csrf-token returns a token and sets the same value in the
"csrfToken" cookie. Unsafe requests must echo it in the X-CSRF-Token or
CSRF-Token header (or a "_csrf" form/query/JSON field). The token is signed
with the session secret and expires after CSRF_TOKEN_MAX_AGE seconds.

SECURITY: A token is accepted only if its signature and age are valid and it
equals the cookie value, so a cross-site form cannot forge one.
"""

from __future__ import annotations

import hmac
import secrets

from flask import current_app, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..error_codes import ApiError
from .security_service import log_request_event


CSRF_COOKIE_NAME = "csrfToken"
CSRF_SALT = "csrf-token"
SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
EXEMPT_PREFIXES = ("/api/webhooks", "/api/health")


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=CSRF_SALT)


def generate_token() -> str:
    return _serializer().dumps(secrets.token_hex(32))


def set_token_cookie(response, token: str):
    cfg = current_app.config
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        max_age=cfg["CSRF_TOKEN_MAX_AGE"],
        secure=cfg.get("JWT_COOKIE_SECURE", False),
        samesite=cfg.get("JWT_COOKIE_SAMESITE", "Lax"),
        httponly=False,
    )
    return response


def _submitted_token() -> str | None:
    token = request.headers.get("X-CSRF-Token") or request.headers.get("CSRF-Token")
    if token:
        return token
    token = request.form.get("_csrf") or request.args.get("_csrf")
    if token:
        return token
    body = request.get_json(silent=True)
    if isinstance(body, dict) and isinstance(body.get("_csrf"), str):
        return body["_csrf"]
    return None


def _reject(code: str, reason: str):
    log_request_event("CSRF_TOKEN_INVALID", reason=reason)
    raise ApiError(code)


def protect() -> None:
    """
    before_request hook for unsafe methods.

    Raises ApiError ERR_CSRF_002 (missing), ERR_CSRF_003 (expired) or
    ERR_CSRF_001 (invalid or not matching the cookie).
    """
    if not current_app.config.get("CSRF_ENABLED", True):
        return
    if request.method in SAFE_METHODS or request.path.startswith(EXEMPT_PREFIXES):
        return
    if not request.path.startswith("/api"):
        return

    token = _submitted_token()
    cookie = request.cookies.get(CSRF_COOKIE_NAME)
    if not token or not cookie:
        _reject("ERR_CSRF_002", "CSRF token missing")

    try:
        _serializer().loads(token, max_age=current_app.config["CSRF_TOKEN_MAX_AGE"])
    except SignatureExpired:
        _reject("ERR_CSRF_003", "CSRF token expired")
    except BadSignature:
        _reject("ERR_CSRF_001", "CSRF token signature invalid")

    if not hmac.compare_digest(token.encode("utf-8"), cookie.encode("utf-8")):
        _reject("ERR_CSRF_001", "CSRF token does not match cookie")
