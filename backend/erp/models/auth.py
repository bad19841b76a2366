from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z

ROLE_ADMIN = "admin"
ROLE_SALES_VIEWER = "sales_viewer"
USER_ROLES = {ROLE_ADMIN, ROLE_SALES_VIEWER}


class User(db.Model):
    """
    Login identity.

    MULTI-TENANT: An admin owns one or more Businesses (Business.user_id).
    A sales_viewer owns nothing and is bound to exactly one business through
    business_id, assigned by that business's owner.

    WHY: Every action must be attributable. No shared logins.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.Index("ix_users_business_role", "business_id", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    avatar = db.Column(db.String(255), nullable=True)

    role = db.Column(db.String(20), nullable=False, default=ROLE_ADMIN)

    # Assigned business for sales_viewer accounts (NULL for owners)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", use_alter=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    assigned_business = db.relationship("Business", foreign_keys=[business_id])

    @property
    def is_sales_viewer(self) -> bool:
        return self.role == ROLE_SALES_VIEWER

    @property
    def avatar_url(self) -> str | None:
        return f"/uploads/avatars/{self.avatar}" if self.avatar else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "role": self.role,
            "businessId": self.business_id,
            "avatar": self.avatar_url,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "lastLoginAt": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }
