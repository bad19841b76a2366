from __future__ import annotations

from ..extensions import db
from erp.money import to_number
from erp.time_utils import to_utc_z

TAX_SEPARATE = "tax_separate"
TAX_INCLUSIVE = "tax_inclusive"
TAX_FREE = "tax_free"
PRODUCT_TAX_TYPES = {TAX_SEPARATE, TAX_INCLUSIVE, TAX_FREE}


class Product(db.Model):
    """
    Catalog item with buy/sell prices and a tax-type flag.

    MULTI-TENANT: Scoped to a business via business_id. product_code is unique
    among the business's active products (checked in the service layer).

    tax_type:
    - tax_separate: prices exclude VAT, 10% is added on top
    - tax_inclusive: prices include VAT
    - tax_free: exempt, VAT is always 0
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_business_active", "business_id", "is_active"),
        db.Index("ix_products_business_code", "business_id", "product_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    product_code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    spec = db.Column(db.String(50), nullable=True)
    unit = db.Column(db.String(20), nullable=True)
    current_stock = db.Column(db.Integer, nullable=False, default=0)
    buy_price = db.Column(db.Numeric(15, 2), nullable=True)
    sell_price = db.Column(db.Numeric(15, 2), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    tax_type = db.Column(db.String(20), nullable=False, default=TAX_SEPARATE)
    memo = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("products", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "businessId": self.business_id,
            "productCode": self.product_code,
            "name": self.name,
            "spec": self.spec,
            "unit": self.unit,
            "currentStock": self.current_stock,
            "buyPrice": to_number(self.buy_price),
            "sellPrice": to_number(self.sell_price),
            "category": self.category,
            "taxType": self.tax_type,
            "memo": self.memo,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
