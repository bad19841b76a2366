from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z

CUSTOMER_TYPE_SALES = "매출처"
CUSTOMER_TYPE_PURCHASE = "매입처"
CUSTOMER_TYPE_OTHER = "기타"
CUSTOMER_TYPES = {CUSTOMER_TYPE_SALES, CUSTOMER_TYPE_PURCHASE, CUSTOMER_TYPE_OTHER}

# English aliases accepted from API clients and spreadsheets
CUSTOMER_TYPE_ALIASES = {
    "sales": CUSTOMER_TYPE_SALES,
    "purchase": CUSTOMER_TYPE_PURCHASE,
    "other": CUSTOMER_TYPE_OTHER,
}


class Customer(db.Model):
    """
    Counterparty on the sales side, the purchase side, or both.

    MULTI-TENANT: Scoped to a business via business_id. customer_code is
    generated per business (C0001, C0002, ...).

    WHY: Soft-deleted (is_active=False) so sales and purchases keep pointing
    at a real row after the customer is removed from the active list.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("business_id", "customer_code", name="uq_customers_business_code"),
        db.Index("ix_customers_business_active", "business_id", "is_active"),
        db.Index("ix_customers_business_number", "business_id", "business_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    customer_code = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    business_number = db.Column(db.String(12), nullable=True)
    representative = db.Column(db.String(100), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    fax = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(100), nullable=True)
    manager_contact = db.Column(db.String(100), nullable=True)
    business_type = db.Column(db.String(100), nullable=True)
    business_item = db.Column(db.String(100), nullable=True)
    customer_type = db.Column(db.String(20), nullable=False, default=CUSTOMER_TYPE_OTHER)
    memo = db.Column(db.String(500), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("customers", lazy=True))

    @property
    def contact_phone(self) -> str | None:
        """Number used for Alimtalk delivery: manager first, then main line."""
        return self.manager_contact or self.phone

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "businessId": self.business_id,
            "customerCode": self.customer_code,
            "name": self.name,
            "businessNumber": self.business_number,
            "representative": self.representative,
            "address": self.address,
            "phone": self.phone,
            "fax": self.fax,
            "email": self.email,
            "managerContact": self.manager_contact,
            "businessType": self.business_type,
            "businessItem": self.business_item,
            "customerType": self.customer_type,
            "memo": self.memo,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
