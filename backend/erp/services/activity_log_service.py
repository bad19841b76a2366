# Overview: Service-layer operations for the user-visible activity log.

"""
Activity Log Service

Activity logs answer "who did what" in the settings screen. They are
separate from SecurityEvent rows: owners may delete them.

log_activity() is called from other flows after their own commit. A failure
to write the log is logged and rolled back; it never fails the caller.
"""

from __future__ import annotations

import re

from flask import current_app, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError
from ..extensions import db
from ..models import ActivityLog
from ..validation import ValidationError
from .security_service import client_ip


# Order matters: Edge and Opera UAs also contain "Chrome", Chrome UAs contain "Safari".
_BROWSERS = [
    ("Edge", re.compile(r"Edg(e|A|iOS)?/")),
    ("Opera", re.compile(r"OPR/|Opera")),
    ("Samsung Internet", re.compile(r"SamsungBrowser/")),
    ("Whale", re.compile(r"Whale/")),
    ("Firefox", re.compile(r"Firefox/|FxiOS/")),
    ("Chrome", re.compile(r"Chrome/|CriOS/")),
    ("Safari", re.compile(r"Safari/")),
    ("Internet Explorer", re.compile(r"MSIE |Trident/")),
]

_OPERATING_SYSTEMS = [
    ("iOS", re.compile(r"iPhone|iPad|iPod")),
    ("Android", re.compile(r"Android")),
    ("Windows", re.compile(r"Windows")),
    ("macOS", re.compile(r"Mac OS X|Macintosh")),
    ("Linux", re.compile(r"Linux")),
]


def parse_browser(user_agent: str | None) -> str | None:
    if not user_agent:
        return None
    for name, pattern in _BROWSERS:
        if pattern.search(user_agent):
            return name
    return "Unknown"


def parse_os(user_agent: str | None) -> str | None:
    if not user_agent:
        return None
    for name, pattern in _OPERATING_SYSTEMS:
        if pattern.search(user_agent):
            return name
    return "Unknown"


def _build(
    *,
    action_type: str,
    entity: str,
    entity_id: int | None,
    description: str | None,
    user_id: int | None,
    business_id: int | None,
    metadata: dict | None,
) -> ActivityLog:
    if has_request_context():
        ip_address = client_ip()
        user_agent = request.headers.get("User-Agent")
    else:
        ip_address = user_agent = None

    return ActivityLog(
        user_id=user_id,
        business_id=business_id,
        action_type=action_type,
        entity=entity,
        entity_id=entity_id,
        description=description,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        browser=parse_browser(user_agent),
        os=parse_os(user_agent),
        metadata_json=metadata,
    )


def log_activity(
    action_type: str,
    entity: str,
    entity_id: int | None = None,
    description: str | None = None,
    *,
    user_id: int | None = None,
    business_id: int | None = None,
    metadata: dict | None = None,
) -> ActivityLog | None:
    """Record one activity row. Returns None when the write failed."""
    log = _build(
        action_type=action_type,
        entity=entity,
        entity_id=entity_id,
        description=description,
        user_id=user_id,
        business_id=business_id,
        metadata=metadata,
    )
    try:
        db.session.add(log)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to write activity log %s/%s", action_type, entity)
        return None
    return log


def create_log(*, user, business_id: int | None, payload: dict) -> ActivityLog:
    """Client-submitted activity row (POST /api/activity-logs)."""
    payload = payload or {}
    raw_action, raw_entity = payload.get("actionType"), payload.get("entity")
    action_type = raw_action.strip() if isinstance(raw_action, str) else ""
    entity = raw_entity.strip() if isinstance(raw_entity, str) else ""
    errors = []
    if not action_type:
        errors.append("actionType is required")
    if not entity:
        errors.append("entity is required")
    entity_id = payload.get("entityId")
    if entity_id is not None and (isinstance(entity_id, bool) or not isinstance(entity_id, int)):
        errors.append("entityId must be an integer")
    metadata = payload.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        errors.append("metadata must be an object")
    if errors:
        raise ValidationError(errors=errors)

    log = _build(
        action_type=action_type[:50],
        entity=entity[:100],
        entity_id=entity_id,
        description=payload.get("description"),
        user_id=user.id,
        business_id=business_id,
        metadata=metadata,
    )
    db.session.add(log)
    db.session.commit()
    return log


def list_user_logs(*, user_id: int):
    return db.session.query(ActivityLog).filter(ActivityLog.user_id == user_id).order_by(
        ActivityLog.created_at.desc(), ActivityLog.id.desc()
    )


def list_business_logs(*, business_id: int, action_type: str | None = None, entity: str | None = None):
    query = db.session.query(ActivityLog).filter(ActivityLog.business_id == business_id)
    if action_type:
        query = query.filter(ActivityLog.action_type == action_type)
    if entity:
        query = query.filter(ActivityLog.entity == entity)
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())


def slice_logs(query, *, limit: int, offset: int) -> tuple[list[ActivityLog], int]:
    total = query.order_by(None).count()
    return query.offset(offset).limit(limit).all(), total


def delete_log(*, user, log_id: int) -> None:
    """Owners delete their own rows; an admin may also delete rows of businesses they own."""
    log = db.session.get(ActivityLog, log_id)
    if log is None:
        raise NotFoundError("활동 로그를 찾을 수 없습니다.")
    owned_business_ids = {b.id for b in getattr(user, "businesses", []) or []}
    if log.user_id != user.id and log.business_id not in owned_business_ids:
        raise NotFoundError("활동 로그를 찾을 수 없습니다.")
    db.session.delete(log)
    db.session.commit()
