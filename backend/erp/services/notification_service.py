# Overview: Service-layer operations for in-app notifications.

"""
Notification Service

MULTI-TENANT: Notifications belong to a user. Every read, update and delete
filters by the caller's user_id, so a foreign id is reported as not found.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..error_codes import ApiError
from ..extensions import db
from ..models import Notification
from ..models.communications import NOTIFICATION_PRIORITIES
from ..validation import ModelValidationPolicy, validate_payload


NOTIFICATION_POLICY = ModelValidationPolicy(
    writable_fields={"type", "title", "message", "link", "priority", "relatedId", "relatedType"},
    required_on_create={"type", "title", "message"},
    strip_unknown=True,
    choices={"priority": NOTIFICATION_PRIORITIES},
)


def create_notification(
    user_id: int,
    business_id: int | None,
    type: str,
    title: str,
    message: str,
    link: str | None = None,
    priority: str = "info",
    metadata: dict | None = None,
    related_id: int | None = None,
    related_type: str | None = None,
) -> Notification | None:
    """
    Helper for other flows (signature, upload, ...). Best effort: a failed
    insert is logged and returns None.
    """
    notification = Notification(
        user_id=user_id,
        business_id=business_id,
        type=type,
        title=title,
        message=message,
        link=link,
        priority=priority if priority in NOTIFICATION_PRIORITIES else "info",
        metadata_json=metadata,
        related_id=related_id,
        related_type=related_type,
    )
    try:
        db.session.add(notification)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to create notification for user %s", user_id)
        return None
    return notification


def create_from_payload(*, user, business_id: int | None, payload: dict) -> Notification:
    payload = dict(payload or {})
    metadata = payload.pop("metadata", None)
    patch = validate_payload(model=Notification, payload=payload, policy=NOTIFICATION_POLICY, partial=False)
    patch.setdefault("priority", "info")
    notification = Notification(user_id=user.id, business_id=business_id, metadata_json=metadata, **patch)
    db.session.add(notification)
    db.session.commit()
    return notification


def list_notifications(*, user_id: int, is_read: bool | None = None):
    query = db.session.query(Notification).filter(Notification.user_id == user_id)
    if is_read is not None:
        query = query.filter(Notification.is_read.is_(is_read))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc())


def unread_count(*, user_id: int) -> int:
    return db.session.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).count()


def _get_own(user_id: int, notification_id: int) -> Notification:
    notification = db.session.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if notification is None:
        raise ApiError("ERR_NOTIF_001")
    return notification


def mark_read(*, user_id: int, notification_id: int) -> Notification:
    notification = _get_own(user_id, notification_id)
    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_read(*, user_id: int) -> int:
    updated = db.session.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.session.commit()
    return updated


def delete_notification(*, user_id: int, notification_id: int) -> None:
    db.session.delete(_get_own(user_id, notification_id))
    db.session.commit()


def delete_all(*, user_id: int) -> int:
    deleted = db.session.query(Notification).filter(
        Notification.user_id == user_id
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
