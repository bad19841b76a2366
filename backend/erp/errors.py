# Overview: Maps domain exceptions to HTTP responses for the whole app.

"""
Error handlers.

Services raise plain exceptions; this module is the only place that turns
them into status codes:

- ValidationError  -> 400 with per-field `errors`
- NotFoundError    -> 404
- TenantAccessError -> 404 (same body as a missing business, no existence leak)
- ConflictError    -> 409
- ApiError         -> status from the error code table
- anything else    -> 500, detail only in development
"""

from __future__ import annotations

from flask import current_app
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .error_codes import ApiError, ERROR_CODES
from .responses import fail
from .validation import ConflictError, ValidationError


class NotFoundError(LookupError):
    """404-level: resource missing inside an accessible business."""


def register_error_handlers(app) -> None:
    from .services.tenant_service import TenantAccessError

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return fail(e.message, 400, e.errors)

    @app.errorhandler(ConflictError)
    def handle_conflict(e: ConflictError):
        return fail(str(e), 409)

    @app.errorhandler(NotFoundError)
    def handle_not_found(e: NotFoundError):
        return fail(str(e), 404)

    @app.errorhandler(TenantAccessError)
    def handle_tenant_access(e: TenantAccessError):
        return fail(ERROR_CODES["ERR_BIZ_001"].message, 404)

    @app.errorhandler(ApiError)
    def handle_api_error(e: ApiError):
        return e.to_dict(), e.status

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        return fail(ERROR_CODES["ERR_FILE_001"].message, 413, code="ERR_FILE_001")

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        return fail(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        from .extensions import db

        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        body = {"code": "ERR_SRV_001"}
        if current_app.config.get("APP_ENV") == "development":
            body["error"] = str(e)
        return fail(ERROR_CODES["ERR_SRV_001"].message, 500, **body)
