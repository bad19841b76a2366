from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z

NOTIFICATION_PRIORITIES = {"low", "info", "medium", "high", "urgent"}
NOTE_TYPES = {"general", "memo", "reminder"}


class Notification(db.Model):
    """
    In-app notification for one user.

    MULTI-TENANT: Always read and written through user_id of the caller.
    business_id is informational (which business the event came from).
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "is_read"),
        db.Index("ix_notifications_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=True, index=True)

    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    link = db.Column(db.String(255), nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    priority = db.Column(db.String(20), nullable=False, default="info")
    metadata_json = db.Column("metadata", db.JSON, nullable=True)
    related_id = db.Column(db.Integer, nullable=True)
    related_type = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessId": self.business_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "link": self.link,
            "isRead": self.is_read,
            "priority": self.priority,
            "metadata": self.metadata_json,
            "relatedId": self.related_id,
            "relatedType": self.related_type,
            "createdAt": to_utc_z(self.created_at),
        }


class ActivityLog(db.Model):
    """
    User-visible audit trail ("who did what").

    WHY: Separate from SecurityEvent. Activity logs are shown in the UI and can
    be deleted by their owner; security events are append-only.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_user_created", "user_id", "created_at"),
        db.Index("ix_activity_logs_business_created", "business_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=True, index=True)

    action_type = db.Column(db.String(50), nullable=False)
    entity = db.Column(db.String(100), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(100), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    browser = db.Column(db.String(50), nullable=True)
    os = db.Column(db.String(50), nullable=True)
    metadata_json = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user.name if self.user else None,
            "businessId": self.business_id,
            "actionType": self.action_type,
            "entity": self.entity,
            "entityId": self.entity_id,
            "description": self.description,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "browser": self.browser,
            "os": self.os,
            "metadata": self.metadata_json,
            "createdAt": to_utc_z(self.created_at),
        }


class Note(db.Model):
    """
    Free-form note attached to a business, optionally pointing at a record
    (related_type/related_id, e.g. "sales"/12).
    """
    __tablename__ = "notes"
    __table_args__ = (
        db.Index("ix_notes_business_type", "business_id", "note_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=True)
    note_type = db.Column(db.String(20), nullable=False, default="general")
    related_id = db.Column(db.Integer, nullable=True)
    related_type = db.Column(db.String(50), nullable=True)
    tags = db.Column(db.JSON, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "businessId": self.business_id,
            "title": self.title,
            "content": self.content,
            "noteType": self.note_type,
            "relatedId": self.related_id,
            "relatedType": self.related_type,
            "tags": self.tags or [],
            "createdBy": self.created_by,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
