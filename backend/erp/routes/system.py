# Overview: Flask routes for health checks, CSRF tokens and uploaded files.

"""
System endpoints.

- GET /api/health: database check; 503 when the database is unreachable
- GET /api/csrf-token: issues a double-submit token (body + cookie)
- GET /uploads/<path>: files stored under UPLOAD_PATH (avatars, signatures)
"""

import time

from flask import Blueprint, current_app, send_from_directory
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Business, User
from ..responses import ok
from ..services import csrf_service, upload_service
from ..time_utils import to_utc_z, utcnow


system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run a trivial query plus two counts. Returns status, latency and details."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        user_count = db.session.query(User).count()
        business_count = db.session.query(Business).count()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }

    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "details": {"users": user_count, "businesses": business_count},
    }


@system_bp.get("/api/health")
def health():
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "environment": current_app.config.get("APP_ENV"),
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }
    return body, 200 if healthy else 503


@system_bp.get("/api/csrf-token")
def csrf_token():
    token = csrf_service.generate_token()
    response, status = ok({"csrfToken": token})
    csrf_service.set_token_cookie(response, token)
    return response, status


@system_bp.get("/uploads/<path:filename>")
def uploaded_file(filename: str):
    """send_from_directory rejects paths escaping UPLOAD_PATH with 404."""
    return send_from_directory(
        current_app.config["UPLOAD_PATH"],
        filename,
        mimetype=upload_service.mimetype_for(filename),
    )
