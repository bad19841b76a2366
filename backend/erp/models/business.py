from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z


class Business(db.Model):
    """
    Tenant root: one company or self-employed entity.

    MULTI-TENANT: Every customer, product, sale, purchase, payment, note and
    setting row carries business_id. Access is granted to the owning user
    (user_id) and to sales_viewer users assigned to it.

    WHY: Soft-deleted (is_active=False) so historical documents keep a valid
    issuer for statements and exports.
    """
    __tablename__ = "businesses"
    __table_args__ = (
        db.UniqueConstraint("business_number", name="uq_businesses_business_number"),
        db.Index("ix_businesses_user_active", "user_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # 10 digits, dashes stripped on write
    business_number = db.Column(db.String(12), nullable=False)
    company_name = db.Column(db.String(200), nullable=False)
    representative = db.Column(db.String(100), nullable=False)
    business_type = db.Column(db.String(100), nullable=True)
    business_item = db.Column(db.String(100), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    fax = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(100), nullable=True)
    homepage = db.Column(db.String(200), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    owner = db.relationship("User", foreign_keys=[user_id], backref=db.backref("businesses", lazy=True))

    @property
    def formatted_business_number(self) -> str:
        n = self.business_number or ""
        if len(n) == 10 and n.isdigit():
            return f"{n[:3]}-{n[3:5]}-{n[5:]}"
        return n

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessNumber": self.business_number,
            "companyName": self.company_name,
            "representative": self.representative,
            "businessType": self.business_type,
            "businessItem": self.business_item,
            "address": self.address,
            "phone": self.phone,
            "fax": self.fax,
            "email": self.email,
            "homepage": self.homepage,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class CompanySettings(db.Model):
    """
    Per-business key/value settings (sessionTimeout, twoFactorAuth, ...).

    Values are stored as text; readers parse what they need.
    """
    __tablename__ = "company_settings"
    __table_args__ = (
        db.UniqueConstraint("business_id", "setting_key", name="uq_company_settings_business_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    setting_key = db.Column(db.String(50), nullable=False)
    setting_value = db.Column(db.Text, nullable=False)
    description = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("settings", lazy=True))
