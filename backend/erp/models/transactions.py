from __future__ import annotations

from ..extensions import db
from erp.money import to_number
from erp.time_utils import to_iso_date, to_utc_z

PAYMENT_TYPE_RECEIPT = "수금"   # money in from a customer
PAYMENT_TYPE_PAYMENT = "입금"   # money out to a supplier
PAYMENT_TYPES = {PAYMENT_TYPE_RECEIPT, PAYMENT_TYPE_PAYMENT}

# API vocabulary <-> stored value
PAYMENT_TYPE_BY_API = {"receipt": PAYMENT_TYPE_RECEIPT, "payment": PAYMENT_TYPE_PAYMENT}
PAYMENT_API_BY_TYPE = {v: k for k, v in PAYMENT_TYPE_BY_API.items()}


def _customer_summary(customer) -> dict | None:
    if customer is None:
        return None
    return {
        "id": customer.id,
        "customerCode": customer.customer_code,
        "name": customer.name,
        "businessNumber": customer.business_number,
    }


class Sales(db.Model):
    """
    Sales document header.

    MULTI-TENANT: business_id must match the business of customer_id and of
    every line's product_id.

    total_amount is the supply amount (공급가액, before VAT); vat_amount is
    the tax on top. Grand total = total_amount + vat_amount.

    E-signature: signed_by_user_id / signed_at / signature_image are written
    once. A signed document cannot be signed again.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_business_date", "business_id", "transaction_date"),
        db.Index("ix_sales_business_customer", "business_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    transaction_date = db.Column(db.Date, nullable=False)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    vat_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    description = db.Column(db.String(500), nullable=True)
    memo = db.Column(db.Text, nullable=True)

    signed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    signed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    signature_image = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    signed_by = db.relationship("User")
    items = db.relationship(
        "SalesItem",
        back_populates="sales",
        cascade="all, delete-orphan",
        order_by="SalesItem.id",
    )

    @property
    def is_signed(self) -> bool:
        return self.signed_at is not None

    @property
    def grand_total(self):
        return (self.total_amount or 0) + (self.vat_amount or 0)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "businessId": self.business_id,
            "customerId": self.customer_id,
            "customer": _customer_summary(self.customer),
            "transactionDate": to_iso_date(self.transaction_date),
            "totalAmount": to_number(self.total_amount),
            "vatAmount": to_number(self.vat_amount),
            "grandTotal": to_number(self.grand_total),
            "description": self.description,
            "memo": self.memo,
            "signedByUserId": self.signed_by_user_id,
            "signedAt": to_utc_z(self.signed_at) if self.signed_at else None,
            "signatureImage": f"/uploads/signatures/{self.signature_image}" if self.signature_image else None,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SalesItem(db.Model):
    """Sales line. supply_amount excludes VAT; tax_amount is the line VAT."""
    __tablename__ = "sales_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    item_name = db.Column(db.String(200), nullable=False)
    specification = db.Column(db.String(50), nullable=True)
    unit = db.Column(db.String(20), nullable=True)
    quantity = db.Column(db.Numeric(10, 2), nullable=False, default=1)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False)
    supply_amount = db.Column(db.Numeric(15, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    remark = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sales = db.relationship("Sales", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salesId": self.sales_id,
            "productId": self.product_id,
            "productCode": self.product.product_code if self.product else None,
            "itemName": self.item_name,
            "specification": self.specification,
            "unit": self.unit,
            "quantity": to_number(self.quantity),
            "unitPrice": to_number(self.unit_price),
            "supplyAmount": to_number(self.supply_amount),
            "taxAmount": to_number(self.tax_amount),
            "remark": self.remark,
        }


class Purchase(db.Model):
    """
    Purchase document header (매입).

    MULTI-TENANT: Same parent-chain rule as Sales. A customer_id that does not
    belong to the business is stored as NULL rather than rejected.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_business_date", "business_id", "purchase_date"),
        db.Index("ix_purchases_business_customer", "business_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    purchase_date = db.Column(db.Date, nullable=False)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    vat_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    memo = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("purchases", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("purchases", lazy=True))
    items = db.relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )

    @property
    def grand_total(self):
        return (self.total_amount or 0) + (self.vat_amount or 0)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "businessId": self.business_id,
            "customerId": self.customer_id,
            "customer": _customer_summary(self.customer),
            "purchaseDate": to_iso_date(self.purchase_date),
            "totalAmount": to_number(self.total_amount),
            "vatAmount": to_number(self.vat_amount),
            "grandTotal": to_number(self.grand_total),
            "memo": self.memo,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """Purchase line. amount is the supply amount of the line."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product_code = db.Column(db.String(50), nullable=True)
    product_name = db.Column(db.String(200), nullable=False)
    spec = db.Column(db.String(50), nullable=True)
    unit = db.Column(db.String(20), nullable=True)
    quantity = db.Column(db.Numeric(10, 2), nullable=False, default=1)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase = db.relationship("Purchase", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchaseId": self.purchase_id,
            "productId": self.product_id,
            "productCode": self.product_code,
            "productName": self.product_name,
            "spec": self.spec,
            "unit": self.unit,
            "quantity": to_number(self.quantity),
            "unitPrice": to_number(self.unit_price),
            "amount": to_number(self.amount),
        }


class Payment(db.Model):
    """
    Receipt (수금) from or disbursement (입금) to a customer.

    Not tied to a specific sales/purchase row; the transaction ledger nets
    payments against documents per customer.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_business_date", "business_id", "payment_date"),
        db.Index("ix_payments_business_customer", "business_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    payment_date = db.Column(db.Date, nullable=False)
    payment_type = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    payment_method = db.Column(db.String(50), nullable=True)
    bank_account = db.Column(db.String(100), nullable=True)
    description = db.Column(db.String(500), nullable=True)
    memo = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("payments", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "businessId": self.business_id,
            "customerId": self.customer_id,
            "customer": _customer_summary(self.customer),
            "paymentDate": to_iso_date(self.payment_date),
            "paymentType": self.payment_type,
            "type": PAYMENT_API_BY_TYPE.get(self.payment_type),
            "amount": to_number(self.amount),
            "paymentMethod": self.payment_method,
            "bankAccount": self.bank_account,
            "description": self.description,
            "memo": self.memo,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
